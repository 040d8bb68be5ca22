from luckydraw.db.engine import get_sessionmaker, make_engine
from luckydraw.db.store import CONFIG_KEY, LEDGER_KEY, SQLAlchemyStore
from luckydraw.draw import DrawConfig, Tier
from luckydraw.models import Base
from luckydraw.workflows import format_results, open_draw


def main() -> None:
    """Seed the development database with a half-finished draw."""
    engine = make_engine()

    # Drop and recreate the schema for a clean slate.
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    store = SQLAlchemyStore(get_sessionmaker(engine))

    config = DrawConfig(
        title="Gala 2026",
        min_number=1,
        max_number=120,
        tiers=(
            Tier("Grand Prize", 1),
            Tier("Runner-up", 3),
            Tier("Lucky Prize", 6),
        ),
    ).validate()
    store.save(CONFIG_KEY, config.to_json())
    # Grand prize drawn, runner-up partially drawn.
    store.save(LEDGER_KEY, [[42], [7, 99], []])
    engine.dispose()

    draw = open_draw()
    print(format_results(draw))
    print(f"Next tier: {draw.config.tiers[draw.current_tier_index].name}")


if __name__ == "__main__":
    main()
