from __future__ import annotations

import random
import unittest
from typing import Iterable

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from luckydraw.db.store import CONFIG_KEY, LEDGER_KEY, InMemoryStore, SQLAlchemyStore
from luckydraw.draw import (
    DrawConfig,
    DrawListener,
    DrawPhase,
    DrawStateEngine,
    InvalidConfigError,
    InvalidRangeError,
    OperationInvalidError,
    PoolExhaustedError,
    ReconfigureOutcome,
    Tier,
    TierExhaustedError,
)
from luckydraw.models import Base


def _config(*capacities: int, low: int = 1, high: int = 10) -> DrawConfig:
    return DrawConfig(
        title="Test",
        min_number=low,
        max_number=high,
        tiers=[Tier(f"T{i}", c) for i, c in enumerate(capacities)],
    )


def scripted(indices: Iterable[int]):
    """Index source replaying ``indices`` in order."""
    iterator = iter(indices)
    return lambda size: next(iterator)


def first(size: int) -> int:
    return 0


class RecordingListener(DrawListener):
    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.snapshots = []

    def on_draw_start(self) -> None:
        self.events.append(("start",))

    def on_number_sampled(self, number: int) -> None:
        self.events.append(("sampled", number))

    def on_draw_stop(self, winning_number: int, tier_index: int) -> None:
        self.events.append(("stop", winning_number, tier_index))

    def on_tier_advanced(self, new_index: int) -> None:
        self.events.append(("advanced", new_index))

    def on_all_finished(self) -> None:
        self.events.append(("finished",))

    def on_state_changed(self, snapshot) -> None:
        self.snapshots.append(snapshot)


class DrawEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore(namespace="")

    def _engine(self, config: DrawConfig, **kwargs) -> DrawStateEngine:
        kwargs.setdefault("index_source", first)
        return DrawStateEngine(self.store, config=config, **kwargs)

    def _draw(self, engine: DrawStateEngine):
        engine.request_draw()
        return engine.request_draw()

    def test_single_tier_exhausts_then_ignores_requests(self) -> None:
        engine = self._engine(_config(3))
        winners = [self._draw(engine) for _ in range(3)]
        self.assertEqual(winners, [1, 2, 3])
        self.assertTrue(engine.all_finished)
        self.assertEqual(engine.phase, DrawPhase.FINISHED)

        self.assertIsNone(engine.request_draw())
        self.assertFalse(engine.running)
        self.assertEqual(engine.ledger.to_json(), [[1, 2, 3]])
        self.assertEqual(self.store.load(LEDGER_KEY), [[1, 2, 3]])

    def test_full_tier_advances_without_drawing(self) -> None:
        engine = self._engine(_config(1, 2))
        self._draw(engine)
        self.assertFalse(engine.all_finished)
        self.assertEqual(engine.current_tier_index, 0)

        self.assertIsNone(engine.request_draw())
        self.assertEqual(engine.current_tier_index, 1)
        self.assertFalse(engine.running)
        self.assertEqual(engine.ledger.to_json(), [[1], []])

        self.assertEqual(self._draw(engine), 2)
        self.assertEqual(engine.ledger.to_json(), [[1], [2]])

    def test_request_draw_toggles_stop(self) -> None:
        engine = self._engine(_config(2), index_source=scripted([4]))
        self.assertIsNone(engine.request_draw())
        self.assertTrue(engine.running)
        self.assertEqual(engine.phase, DrawPhase.RUNNING)
        self.assertEqual(engine.request_draw(), 5)
        self.assertFalse(engine.running)
        self.assertNotIn(5, engine.pool)

    def test_stop_without_draw_is_noop(self) -> None:
        engine = self._engine(_config(1))
        self.assertIsNone(engine.stop())
        self.assertEqual(engine.ledger.to_json(), [[]])

    def test_tick_samples_without_mutation(self) -> None:
        listener = RecordingListener()
        engine = self._engine(
            _config(1), listeners=[listener], sample_source=lambda size: size - 1
        )
        self.assertIsNone(engine.tick())
        engine.request_draw()
        self.assertEqual(engine.tick(), 10)
        self.assertEqual(engine.tick(), 10)
        self.assertEqual(len(engine.pool), 10)
        self.assertIn(("sampled", 10), listener.events)

    def test_pool_exhausted_while_tier_has_capacity(self) -> None:
        engine = self._engine(_config(3, low=1, high=2))
        self._draw(engine)
        self._draw(engine)
        with self.assertRaises(PoolExhaustedError):
            engine.request_draw()
        self.assertFalse(engine.running)

    def test_bad_index_source_leaves_state_untouched(self) -> None:
        engine = self._engine(_config(1), index_source=lambda size: size)
        engine.request_draw()
        with self.assertRaises(ValueError):
            engine.stop()
        self.assertTrue(engine.running)
        self.assertEqual(len(engine.pool), 10)
        self.assertEqual(engine.ledger.to_json(), [[]])

    def test_winner_is_uniform_index_into_current_pool(self) -> None:
        sizes: list[int] = []

        def source(size: int) -> int:
            sizes.append(size)
            return size // 2

        engine = self._engine(_config(2), index_source=source)
        self.assertEqual(self._draw(engine), 6)
        self.assertEqual(self._draw(engine), 5)
        self.assertEqual(sizes, [10, 9])

    def test_listener_event_order(self) -> None:
        listener = RecordingListener()
        engine = self._engine(_config(1, 1), listeners=[listener])
        self._draw(engine)
        engine.request_draw()
        self._draw(engine)
        self.assertEqual(
            listener.events,
            [
                ("start",),
                ("stop", 1, 0),
                ("advanced", 1),
                ("start",),
                ("stop", 2, 1),
                ("finished",),
            ],
        )
        self.assertTrue(listener.snapshots[-1].all_finished)
        self.assertEqual(listener.snapshots[-1].ledger, ((1,), (2,)))

    def test_advance_past_last_tier_closes_draw(self) -> None:
        listener = RecordingListener()
        engine = self._engine(_config(1, 1), listeners=[listener])
        engine.select_tier(1)
        self._draw(engine)
        engine.request_draw()
        self.assertTrue(engine.all_finished)
        self.assertEqual(engine.ledger.to_json(), [[], [1]])
        self.assertIn(("finished",), listener.events)
        self.assertIsNone(engine.request_draw())

    def test_advance_tier_rejected_while_running(self) -> None:
        engine = self._engine(_config(1, 1))
        engine.request_draw()
        with self.assertRaises(OperationInvalidError):
            engine.advance_tier()

    def test_select_tier_rules(self) -> None:
        engine = self._engine(_config(1, 2))
        engine.select_tier(1)
        self.assertEqual(self._draw(engine), 1)
        self.assertEqual(engine.ledger.to_json(), [[], [1]])

        engine.request_draw()
        with self.assertRaises(OperationInvalidError):
            engine.select_tier(0)
        engine.stop()

        with self.assertRaises(TierExhaustedError):
            engine.select_tier(1)
        with self.assertRaises(OperationInvalidError):
            engine.select_tier(5)
        engine.select_tier(0)
        self.assertEqual(engine.current_tier_index, 0)

    def test_out_of_order_completion_finishes_draw(self) -> None:
        engine = self._engine(_config(1, 1))
        engine.select_tier(1)
        self._draw(engine)
        engine.select_tier(0)
        self._draw(engine)
        self.assertTrue(engine.all_finished)
        self.assertTrue(engine.check_all_finished())

    def test_reset_is_idempotent(self) -> None:
        engine = self._engine(_config(1, 2))
        self._draw(engine)
        engine.request_draw()
        self._draw(engine)
        self.assertEqual(engine.ledger.to_json(), [[1], [2]])
        engine.reset()
        once = engine.snapshot()
        engine.reset()
        self.assertEqual(engine.snapshot(), once)
        self.assertEqual(once.ledger, ((), ()))
        self.assertEqual(once.pool_size, 10)
        self.assertEqual(once.current_tier_index, 0)
        self.assertFalse(once.all_finished)
        self.assertIsNone(self.store.load(LEDGER_KEY))

    def test_reset_reopens_finished_draw(self) -> None:
        engine = self._engine(_config(1))
        self._draw(engine)
        self.assertTrue(engine.all_finished)
        engine.reset()
        self.assertEqual(engine.phase, DrawPhase.IDLE)
        self.assertEqual(self._draw(engine), 1)

    def test_invariants_hold_over_random_draws(self) -> None:
        config = _config(3, 4, 5, low=1, high=30)
        engine = self._engine(config, index_source=random.Random(7).randrange)
        full_range = set(range(1, 31))
        previous = [0, 0, 0]
        while not engine.all_finished:
            engine.request_draw()
            engine.tick()
            engine.request_draw()
            ledger = engine.ledger.to_json()
            drawn = [n for numbers in ledger for n in numbers]
            self.assertEqual(len(drawn), len(set(drawn)))
            self.assertFalse(set(drawn) & set(engine.pool))
            self.assertEqual(set(drawn) | set(engine.pool), full_range)
            counts = [len(numbers) for numbers in ledger]
            for before, after, tier in zip(previous, counts, config.tiers):
                self.assertGreaterEqual(after, before)
                self.assertLessEqual(after, tier.capacity)
            previous = counts
        self.assertEqual(previous, [3, 4, 5])


class DrawEngineReloadTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore(namespace="")

    def test_loads_persisted_finished_draw(self) -> None:
        self.store.save(CONFIG_KEY, _config(1, 2).to_json())
        self.store.save(LEDGER_KEY, [[5], [7, 2]])
        engine = DrawStateEngine(self.store)
        self.assertTrue(engine.all_finished)
        self.assertEqual(engine.current_tier_index, 0)
        self.assertNotIn(5, engine.pool)
        self.assertIsNone(engine.request_draw())

    def test_tier_count_mismatch_discards_ledger(self) -> None:
        self.store.save(CONFIG_KEY, _config(1, 1, 1).to_json())
        self.store.save(LEDGER_KEY, [[5], [7]])
        engine = DrawStateEngine(self.store)
        self.assertEqual(engine.ledger.to_json(), [[], [], []])
        self.assertIsNone(self.store.load(LEDGER_KEY))

    def test_missing_config_uses_defaults_without_saving(self) -> None:
        engine = DrawStateEngine(self.store)
        self.assertEqual(engine.config.title, "Lucky Draw")
        self.assertEqual(len(engine.ledger), 4)
        self.assertIsNone(self.store.load(CONFIG_KEY))

    def test_tier_count_edit_before_first_draw_needs_no_confirmation(self) -> None:
        engine = DrawStateEngine(self.store, config=_config(1, 2), index_source=first)
        outcome = engine.reconfigure(_config(1, 2, 3))
        self.assertEqual(outcome, ReconfigureOutcome.APPLIED)
        self.assertEqual(engine.ledger.to_json(), [[], [], []])
        engine.select_tier(2)
        engine.request_draw()
        self.assertEqual(engine.request_draw(), 1)
        self.assertEqual(self.store.load(LEDGER_KEY), [[], [], [1]])

    def test_explicit_config_is_saved(self) -> None:
        DrawStateEngine(self.store, config=_config(2))
        self.assertEqual(self.store.load(CONFIG_KEY), _config(2).to_json())

    def test_progress_survives_reload_through_database(self) -> None:
        engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(engine)
        Session = sessionmaker(bind=engine, future=True, expire_on_commit=False)
        try:
            store = SQLAlchemyStore(Session, namespace="")
            first_run = DrawStateEngine(
                store, config=_config(1, 2), index_source=scripted([3, 0])
            )
            first_run.request_draw()
            first_run.request_draw()
            first_run.request_draw()  # tier 0 full, advances only

            reloaded = DrawStateEngine(store, index_source=scripted([0]))
            self.assertEqual(reloaded.ledger.to_json(), [[4], []])
            self.assertEqual(reloaded.current_tier_index, 1)
            self.assertNotIn(4, reloaded.pool)
            reloaded.request_draw()
            self.assertEqual(reloaded.request_draw(), 1)
        finally:
            engine.dispose()


class DrawEngineReconfigureTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore(namespace="")
        self.engine = DrawStateEngine(
            self.store, config=_config(2, 2), index_source=first
        )
        for _ in range(2):
            self.engine.request_draw()
            self.engine.request_draw()

    def test_capacity_below_drawn_declined_keeps_tiers(self) -> None:
        asked = []

        def decline(plan) -> bool:
            asked.append(plan)
            return False

        outcome = self.engine.reconfigure(_config(1, 2), confirm=decline)
        self.assertEqual(outcome, ReconfigureOutcome.NOT_SAVED)
        self.assertTrue(asked[0].needs_reset)
        self.assertEqual(self.engine.config.capacities, [2, 2])
        self.assertEqual(self.engine.ledger.to_json(), [[1, 2], []])
        self.assertEqual(self.store.load(CONFIG_KEY)["tiers"][0]["capacity"], 2)

    def test_missing_confirmation_counts_as_decline(self) -> None:
        outcome = self.engine.reconfigure(_config(1, 1, 1))
        self.assertEqual(outcome, ReconfigureOutcome.NOT_SAVED)
        self.assertEqual(len(self.engine.config.tiers), 2)

    def test_declined_reset_still_applies_title_and_range(self) -> None:
        edit = DrawConfig("Renamed", 1, 50, [Tier("only", 5)])
        outcome = self.engine.reconfigure(edit, confirm=lambda plan: False)
        self.assertEqual(outcome, ReconfigureOutcome.NOT_SAVED)
        self.assertEqual(self.engine.config.title, "Renamed")
        self.assertEqual(self.engine.config.max_number, 50)
        self.assertEqual(self.engine.config.capacities, [2, 2])
        self.assertEqual(len(self.engine.pool), 48)

    def test_confirmed_reset_discards_winners(self) -> None:
        outcome = self.engine.reconfigure(_config(1, 2, 3), confirm=lambda plan: True)
        self.assertEqual(outcome, ReconfigureOutcome.RESET)
        self.assertEqual(self.engine.ledger.to_json(), [[], [], []])
        self.assertEqual(self.engine.config.capacities, [1, 2, 3])
        self.assertEqual(len(self.engine.pool), 10)
        self.assertIsNone(self.store.load(LEDGER_KEY))
        self.assertEqual(self.store.load(CONFIG_KEY), _config(1, 2, 3).to_json())

    def test_compatible_edit_keeps_winners_and_recomputes_cursor(self) -> None:
        outcome = self.engine.reconfigure(_config(3, 2, high=20))
        self.assertEqual(outcome, ReconfigureOutcome.APPLIED)
        self.assertEqual(self.engine.ledger.to_json(), [[1, 2], []])
        self.assertEqual(self.engine.current_tier_index, 0)
        self.assertEqual(len(self.engine.pool), 18)
        self.assertNotIn(1, self.engine.pool)

    def test_capacity_increase_reopens_finished_draw(self) -> None:
        self.engine.select_tier(1)
        for _ in range(2):
            self.engine.request_draw()
            self.engine.request_draw()
        self.assertTrue(self.engine.all_finished)
        self.engine.reconfigure(_config(2, 3))
        self.assertFalse(self.engine.all_finished)
        self.assertEqual(self.engine.current_tier_index, 1)

    def test_range_stranding_winners_is_rejected(self) -> None:
        before = self.store.load(CONFIG_KEY)
        with self.assertRaises(InvalidRangeError):
            self.engine.reconfigure(_config(2, 2, low=2, high=10))
        self.assertEqual(self.store.load(CONFIG_KEY), before)
        self.assertEqual(self.engine.config.min_number, 1)

    def test_invalid_config_rejected_without_changes(self) -> None:
        before = self.store.load(CONFIG_KEY)
        with self.assertRaises(InvalidConfigError):
            self.engine.reconfigure(_config(2, 2, low=5, high=5))
        with self.assertRaises(InvalidConfigError):
            self.engine.reconfigure(DrawConfig("x", 1, 10, []))
        self.assertEqual(self.store.load(CONFIG_KEY), before)

    def test_reconfigure_rejected_while_running(self) -> None:
        self.engine.request_draw()
        with self.assertRaises(OperationInvalidError):
            self.engine.reconfigure(_config(2, 2))

    def test_rename_and_restore_defaults(self) -> None:
        self.engine.rename("Gala")
        self.assertEqual(self.store.load(CONFIG_KEY)["title"], "Gala")
        with self.assertRaises(InvalidConfigError):
            self.engine.rename("Eleven chars")

        self.engine.restore_defaults()
        self.assertEqual(self.engine.config.title, "Lucky Draw")
        self.assertEqual(self.engine.ledger.to_json(), [[], [], [], []])
        self.assertIsNone(self.store.load(LEDGER_KEY))
        self.assertEqual(self.store.load(CONFIG_KEY)["maxNumber"], 200)


if __name__ == "__main__":
    unittest.main()
