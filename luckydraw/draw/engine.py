"""State machine that draws winning numbers tier by tier."""

from __future__ import annotations

import logging
import random
import secrets
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable, Optional

from ..db.store import CONFIG_KEY, LEDGER_KEY, PersistenceStore
from .config import DrawConfig, Tier, default_config
from .errors import OperationInvalidError, PoolExhaustedError, TierExhaustedError
from .ledger import WinnerLedger
from .reconcile import (
    ReconciledState,
    ReconciliationPolicy,
    ReconfigurePlan,
    derive_state,
    ensure_range_covers,
    fresh_state,
)

logger = logging.getLogger(__name__)

IndexSource = Callable[[int], int]
"""Callable returning an index in ``[0, size)`` for a pool of ``size`` numbers."""

ConfirmCallback = Callable[[ReconfigurePlan], bool]


class DrawPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class ReconfigureOutcome(str, Enum):
    """Result of :meth:`DrawStateEngine.reconfigure`."""

    APPLIED = "applied"
    """The edit was saved and recorded winners were kept."""

    RESET = "reset"
    """The edit was saved and recorded winners were discarded after confirmation."""

    NOT_SAVED = "not_saved"
    """The reset was declined; the tier list was rolled back."""


@dataclass(frozen=True)
class EngineSnapshot:
    """Read-only view of the engine handed to collaborators.

    Attributes
    ----------
    config : DrawConfig
        Active configuration.
    ledger : tuple[tuple[int, ...], ...]
        Drawn numbers per tier, in draw order.
    pool_size : int
        Count of numbers still eligible to be drawn.
    running : bool
        ``True`` between draw start and draw stop.
    current_tier_index : int
        Tier the next draw is recorded against.
    all_finished : bool
        ``True`` once drawing is closed until the next reset.
    """

    config: DrawConfig
    ledger: tuple[tuple[int, ...], ...]
    pool_size: int
    running: bool
    current_tier_index: int
    all_finished: bool

    @property
    def phase(self) -> DrawPhase:
        if self.all_finished:
            return DrawPhase.FINISHED
        if self.running:
            return DrawPhase.RUNNING
        return DrawPhase.IDLE

    @property
    def current_tier(self) -> Tier:
        return self.config.tiers[self.current_tier_index]

    def remaining(self, index: int) -> int:
        return self.config.tiers[index].capacity - len(self.ledger[index])


class DrawListener:
    """Collaborator notified of engine transitions.

    Every hook is a no-op; presentation layers override the ones they need.
    """

    def on_draw_start(self) -> None:
        pass

    def on_number_sampled(self, number: int) -> None:
        pass

    def on_draw_stop(self, winning_number: int, tier_index: int) -> None:
        pass

    def on_tier_advanced(self, new_index: int) -> None:
        pass

    def on_all_finished(self) -> None:
        pass

    def on_state_changed(self, snapshot: EngineSnapshot) -> None:
        pass


class DrawStateEngine:
    """Engine owning the configuration, the pool, the ledger and the tier cursor.

    All mutations go through the public operations and are persisted through
    the injected store before the operation returns.
    """

    def __init__(
        self,
        store: PersistenceStore,
        *,
        config: Optional[DrawConfig] = None,
        listeners: Iterable[DrawListener] = (),
        index_source: Optional[IndexSource] = None,
        sample_source: Optional[IndexSource] = None,
    ) -> None:
        """Create an engine and reconcile it with the persisted records.

        Parameters
        ----------
        store : PersistenceStore
            Storage port holding the ``config`` and ``ledger`` records.
        config : Optional[DrawConfig], default: None
            Configuration to run with. When omitted the persisted configuration
            is loaded, falling back to the default one. A supplied
            configuration is validated and saved.
        listeners : Iterable[DrawListener], default: ()
            Collaborators notified of transitions.
        index_source : Optional[IndexSource], default: None
            Picks the winning index. Defaults to :func:`secrets.randbelow`.
        sample_source : Optional[IndexSource], default: None
            Picks the numbers shown while rolling. Defaults to
            :func:`random.randrange`.
        """

        self._store = store
        self._policy = ReconciliationPolicy(store)
        self._listeners: list[DrawListener] = list(listeners)
        self._index_source: IndexSource = index_source or secrets.randbelow
        self._sample_source: IndexSource = sample_source or random.randrange
        self._running = False

        if config is None:
            self._config = self._policy.load_config()
        else:
            self._config = config.validate()
            self._store.save(CONFIG_KEY, self._config.to_json())

        self._apply(self._policy.startup(self._config))
        logger.debug(
            f"Engine ready: {len(self._config.tiers)} tiers, pool of "
            f"{len(self._pool)}, tier {self._current_tier_index}, "
            f"finished={self._all_finished}"
        )

    # -------- listeners --------
    def add_listener(self, listener: DrawListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: DrawListener) -> None:
        self._listeners.remove(listener)

    def _emit(self, hook: str, *args) -> None:
        for listener in list(self._listeners):
            getattr(listener, hook)(*args)

    def _emit_state(self) -> None:
        self._emit("on_state_changed", self.snapshot())

    # -------- read access --------
    @property
    def config(self) -> DrawConfig:
        return self._config

    @property
    def ledger(self) -> WinnerLedger:
        return self._ledger.copy()

    @property
    def pool(self) -> tuple[int, ...]:
        return tuple(self._pool)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def current_tier_index(self) -> int:
        return self._current_tier_index

    @property
    def all_finished(self) -> bool:
        return self._all_finished

    @property
    def phase(self) -> DrawPhase:
        return self.snapshot().phase

    def remaining(self, index: int) -> int:
        return self._config.tiers[index].capacity - self._ledger.drawn_count(index)

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            config=self._config,
            ledger=tuple(tuple(numbers) for numbers in self._ledger),
            pool_size=len(self._pool),
            running=self._running,
            current_tier_index=self._current_tier_index,
            all_finished=self._all_finished,
        )

    # -------- draw operations --------
    def request_draw(self) -> Optional[int]:
        """Start a draw, or stop the one in progress.

        Returns
        -------
        Optional[int]
            The winning number when this call stopped a running draw,
            otherwise ``None``.

        Raises
        ------
        PoolExhaustedError
            If the current tier has capacity left but no number remains.
        """
        if self._all_finished:
            logger.debug("Draw requested after all tiers finished; ignoring")
            return None
        if self._running:
            return self.stop()

        if self.remaining(self._current_tier_index) <= 0:
            self.advance_tier()
            return None
        if not self._pool:
            raise PoolExhaustedError(
                "No numbers left to draw although tier "
                f"{self._current_tier_index} has capacity remaining"
            )

        self._running = True
        logger.debug(
            f"Draw started for tier {self._current_tier_index} "
            f"with {len(self._pool)} candidates"
        )
        self._emit("on_draw_start")
        self._emit_state()
        return None

    def tick(self) -> Optional[int]:
        """Sample a number to display while a draw is running.

        Sampling never changes state. Returns ``None`` when no draw is running.
        """
        if not self._running or not self._pool:
            return None
        number = self._pool[self._sample_source(len(self._pool))]
        self._emit("on_number_sampled", number)
        return number

    def stop(self) -> Optional[int]:
        """Commit a winner for the running draw.

        Returns
        -------
        Optional[int]
            The winning number, or ``None`` when no draw was running.

        Raises
        ------
        PoolExhaustedError
            If the pool emptied while the draw was running. The draw is
            stopped without a winner.
        ValueError
            If the index source returns an index outside the pool. Nothing is
            mutated and the draw keeps running.
        """
        if not self._running:
            return None
        if not self._pool:
            self._running = False
            self._emit_state()
            raise PoolExhaustedError("Pool emptied while the draw was running")

        size = len(self._pool)
        index = self._index_source(size)
        if not 0 <= index < size:
            raise ValueError(f"Index source returned {index} for a pool of {size}")

        tier_index = self._current_tier_index
        number = self._pool.pop(index)
        self._ledger.record(tier_index, number)
        self._store.save(LEDGER_KEY, self._ledger.to_json())
        self._running = False
        finished_now = self._refresh_all_finished()

        logger.debug(f"Drew {number} for tier {tier_index}")
        self._emit("on_draw_stop", number, tier_index)
        if finished_now:
            logger.info("All tiers finished")
            self._emit("on_all_finished")
        self._emit_state()
        return number

    def advance_tier(self) -> None:
        """Move the cursor to the next tier, or close the draw after the last one.

        Raises
        ------
        OperationInvalidError
            If a draw is running.
        """
        if self._running:
            raise OperationInvalidError("Cannot change tier while a draw is running")
        if self._all_finished:
            return

        if self._current_tier_index >= len(self._config.tiers) - 1:
            self._all_finished = True
            logger.info("Last tier passed; draw closed until reset")
            self._emit("on_all_finished")
        else:
            self._current_tier_index += 1
            logger.debug(f"Advanced to tier {self._current_tier_index}")
            self._emit("on_tier_advanced", self._current_tier_index)
        self._emit_state()

    def _refresh_all_finished(self) -> bool:
        """Set the finished flag when every tier is full.

        Returns ``True`` only when the flag flipped during this call.
        """
        if self._all_finished:
            return False
        full = all(
            self._ledger.drawn_count(index) >= tier.capacity
            for index, tier in enumerate(self._config.tiers)
        )
        if full:
            self._all_finished = True
        return full

    def check_all_finished(self) -> bool:
        """Close the draw when every tier is full and return the finished flag."""
        if self._refresh_all_finished():
            self._emit("on_all_finished")
            self._emit_state()
        return self._all_finished

    def select_tier(self, index: int) -> None:
        """Point the cursor at ``index``, overriding the default tier order.

        Raises
        ------
        OperationInvalidError
            If a draw is running or ``index`` does not name a tier.
        TierExhaustedError
            If the tier has no remaining capacity.
        """
        if self._running:
            raise OperationInvalidError("Stop the running draw before switching tiers")
        if not 0 <= index < len(self._config.tiers):
            raise OperationInvalidError(f"No tier at index {index}")
        if self.remaining(index) <= 0:
            raise TierExhaustedError(
                f"Tier {index} ('{self._config.tiers[index].name}') is already full"
            )
        self._current_tier_index = index
        self._emit_state()

    # -------- configuration --------
    def reconfigure(
        self,
        new_config: DrawConfig,
        *,
        confirm: Optional[ConfirmCallback] = None,
    ) -> ReconfigureOutcome:
        """Apply a configuration edit while reconciling recorded winners.

        Parameters
        ----------
        new_config : DrawConfig
            Edited configuration.
        confirm : Optional[ConfirmCallback], default: None
            Asked with the :class:`ReconfigurePlan` when the edit would discard
            recorded winners. A missing callback counts as a refusal.

        Returns
        -------
        ReconfigureOutcome
            ``APPLIED`` when winners were kept, ``RESET`` when they were
            discarded after confirmation, ``NOT_SAVED`` when the reset was
            declined. On ``NOT_SAVED`` the tier list reverts to the persisted
            one while the title and range of the edit still apply.

        Raises
        ------
        OperationInvalidError
            If a draw is running.
        InvalidConfigError
            If ``new_config`` is invalid, or its range excludes numbers that
            would be kept. Nothing is changed or persisted.
        """
        if self._running:
            raise OperationInvalidError("Cannot reconfigure while a draw is running")
        new_config.validate()

        plan = self._policy.plan(self._ledger, new_config)
        if not plan.needs_reset:
            ensure_range_covers(self._ledger, new_config)
            if len(self._ledger) != len(new_config.tiers):
                # Nothing drawn yet; realign the empty ledger with the new tiers.
                self._store.clear(LEDGER_KEY)
                self._ledger = WinnerLedger.empty(len(new_config.tiers))
            self._keep_ledger(new_config)
            logger.info("Configuration updated; recorded winners kept")
            return ReconfigureOutcome.APPLIED

        if confirm is not None and confirm(plan):
            self._config = new_config
            self._store.save(CONFIG_KEY, new_config.to_json())
            self._discard_ledger()
            logger.info(f"Configuration updated; winners discarded ({'; '.join(plan.reasons)})")
            return ReconfigureOutcome.RESET

        candidate = new_config.with_tiers(
            self._policy.persisted_tiers() or self._config.tiers
        )
        if self._policy.plan(self._ledger, candidate).needs_reset:
            candidate = replace(
                self._config,
                title=new_config.title,
                min_number=new_config.min_number,
                max_number=new_config.max_number,
            )
        ensure_range_covers(self._ledger, candidate)
        self._keep_ledger(candidate)
        logger.info("Reset declined; tier changes were not saved")
        return ReconfigureOutcome.NOT_SAVED

    def rename(self, title: str) -> None:
        """Change only the event title and persist the configuration."""
        config = replace(self._config, title=title).validate()
        self._config = config
        self._store.save(CONFIG_KEY, config.to_json())
        self._emit_state()

    def reset(self) -> None:
        """Discard every recorded winner and return to tier 0.

        Callers must obtain explicit confirmation before calling this method.
        Calling it twice leaves the same state as calling it once.
        """
        self._discard_ledger()
        logger.info("Draw reset")

    def restore_defaults(self) -> None:
        """Drop both persisted records and start over with the default configuration.

        Callers must obtain explicit confirmation before calling this method.
        """
        self._store.clear(CONFIG_KEY)
        self._store.clear(LEDGER_KEY)
        self._config = default_config()
        self._store.save(CONFIG_KEY, self._config.to_json())
        self._discard_ledger()
        logger.info("Defaults restored")

    # -------- internals --------
    def _apply(self, state: ReconciledState) -> None:
        self._ledger = state.ledger
        self._pool = state.pool
        self._current_tier_index = state.current_tier_index
        self._all_finished = state.all_finished

    def _keep_ledger(self, config: DrawConfig) -> None:
        was_finished = self._all_finished
        self._config = config
        self._store.save(CONFIG_KEY, config.to_json())
        self._apply(derive_state(config, self._ledger))
        if self._all_finished and not was_finished:
            self._emit("on_all_finished")
        self._emit_state()

    def _discard_ledger(self) -> None:
        self._store.clear(LEDGER_KEY)
        self._running = False
        self._apply(fresh_state(self._config))
        self._emit_state()


__all__ = [
    "ConfirmCallback",
    "DrawListener",
    "DrawPhase",
    "DrawStateEngine",
    "EngineSnapshot",
    "IndexSource",
    "ReconfigureOutcome",
]
