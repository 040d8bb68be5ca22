from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Union

from .db.engine import get_sessionmaker, make_engine
from .db.store import SQLAlchemyStore
from .draw.config import (
    DrawConfig,
    TierInput,
    normalize_tiers,
    normalize_title,
    parse_number,
)
from .draw.engine import (
    ConfirmCallback,
    DrawListener,
    DrawStateEngine,
    IndexSource,
    ReconfigureOutcome,
)
from .models import Base

AskCallback = Callable[[str], bool]


@dataclass(frozen=True)
class TierSummary:
    """Row of the winner board.

    Attributes
    ----------
    index : int
        Position of the tier in the configuration.
    name : str
        Tier label.
    capacity : int
        Winners the tier accepts.
    winners : tuple[int, ...]
        Numbers drawn for the tier, in draw order.
    remaining : int
        Draws left before the tier is full.
    active : bool
        ``True`` for the tier the next draw is recorded against.
    """

    index: int
    name: str
    capacity: int
    winners: tuple[int, ...]
    remaining: int
    active: bool

    @property
    def selectable(self) -> bool:
        return self.remaining > 0


def open_draw(
    database_url: Optional[str] = None,
    *,
    namespace: Optional[str] = None,
    listeners: Iterable[DrawListener] = (),
    index_source: Optional[IndexSource] = None,
) -> DrawStateEngine:
    """Create a draw engine persisted in a SQL database.

    The ``stored_records`` table is created when missing, then the engine
    reconciles itself with whatever the database already holds.

    Parameters
    ----------
    database_url : Optional[str]
        SQLAlchemy URL. Defaults to ``DB_URL`` from the environment.
    namespace : Optional[str]
        Key prefix separating this draw from others in the same database.
    listeners : Iterable[DrawListener]
        Collaborators notified of engine transitions.
    index_source : Optional[IndexSource]
        Custom winner index picker, mainly for tests.

    Returns
    -------
    DrawStateEngine
        Engine ready for draws.
    """
    engine = make_engine(database_url)
    Base.metadata.create_all(engine)
    store = SQLAlchemyStore(get_sessionmaker(engine), namespace=namespace)
    return DrawStateEngine(store, listeners=listeners, index_source=index_source)


def save_settings(
    engine: DrawStateEngine,
    *,
    title: Optional[str],
    min_number: Union[str, int],
    max_number: Union[str, int],
    tiers: Sequence[TierInput],
    confirm: Optional[ConfirmCallback] = None,
) -> ReconfigureOutcome:
    """Validate raw settings input and apply it to ``engine``.

    The workflow performs the following steps:

    1. Normalize the title (trimmed, defaulted, at most ten characters) and
       the tier rows (default names and capacities).
    2. Parse the range bounds and validate the whole configuration; any error
       is raised before anything is saved.
    3. Delegate to :meth:`DrawStateEngine.reconfigure`, which asks ``confirm``
       before discarding recorded winners.

    Returns
    -------
    ReconfigureOutcome
        Outcome reported by the engine.

    Raises
    ------
    InvalidConfigError
        If the input does not describe a valid configuration.
    """
    config = DrawConfig(
        title=normalize_title(title),
        min_number=parse_number(min_number, "minNumber"),
        max_number=parse_number(max_number, "maxNumber"),
        tiers=normalize_tiers(tiers),
    ).validate()
    return engine.reconfigure(config, confirm=confirm)


def rename_draw(engine: DrawStateEngine, title: Optional[str]) -> str:
    """Normalize ``title``, store it and return the stored value."""
    normalized = normalize_title(title)
    engine.rename(normalized)
    return normalized


def restart_draw(engine: DrawStateEngine, ask: AskCallback) -> bool:
    """Reset ``engine`` after the operator confirms.

    A finished draw needs a single confirmation. An unfinished draw needs two:
    the first states the progress of the current tier, the second warns that
    the action cannot be undone.

    Returns
    -------
    bool
        ``True`` when the draw was reset.
    """
    if engine.all_finished:
        if not ask("All tiers are finished. Reset the draw and clear every winner?"):
            return False
    else:
        snapshot = engine.snapshot()
        index = snapshot.current_tier_index
        tier = snapshot.current_tier
        drawn = len(snapshot.ledger[index])
        message = (
            f"Drawing '{tier.name}': {drawn} drawn, {snapshot.remaining(index)} "
            "remaining. Reset the draw and clear every winner?"
        )
        if not ask(message):
            return False
        if not ask("This cannot be undone. Delete all winners and reset?"):
            return False
    engine.reset()
    return True


def restore_default_settings(engine: DrawStateEngine, ask: AskCallback) -> bool:
    """Revert to the default configuration after confirmation.

    Returns ``True`` when the defaults were restored.
    """
    if not ask("Restore default settings? All winners will be cleared."):
        return False
    engine.restore_defaults()
    return True


def winner_board(engine: DrawStateEngine) -> list[TierSummary]:
    """Summarize every tier for display or export."""
    snapshot = engine.snapshot()
    return [
        TierSummary(
            index=index,
            name=tier.name,
            capacity=tier.capacity,
            winners=snapshot.ledger[index],
            remaining=snapshot.remaining(index),
            active=(
                index == snapshot.current_tier_index and not snapshot.all_finished
            ),
        )
        for index, tier in enumerate(snapshot.config.tiers)
    ]


def format_results(engine: DrawStateEngine) -> str:
    """Render the winner list as plain text, one line per tier."""
    lines = [f"{engine.config.title} - Winners"]
    for row in winner_board(engine):
        numbers = ", ".join(str(n) for n in row.winners) or "-"
        lines.append(f"{row.name} ({len(row.winners)}/{row.capacity}): {numbers}")
    return "\n".join(lines)
