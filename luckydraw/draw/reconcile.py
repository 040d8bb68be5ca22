"""Reconciliation of persisted draw data against a configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..db.store import CONFIG_KEY, LEDGER_KEY, PersistenceStore
from .config import DrawConfig, Tier, default_config
from .errors import ConfigMismatchError, InvalidConfigError, InvalidRangeError
from .ledger import WinnerLedger
from .pool import build_pool

logger = logging.getLogger(__name__)


@dataclass
class ReconciledState:
    """In-memory state rebuilt from a configuration and a ledger.

    Attributes
    ----------
    ledger : WinnerLedger
        Ledger aligned with the configuration's tiers.
    pool : list[int]
        Numbers still eligible to be drawn, ascending.
    current_tier_index : int
        First tier that still has capacity, or 0 when all tiers are full.
    all_finished : bool
        ``True`` when every tier reached its capacity.
    discarded : bool
        ``True`` when persisted winner data was thrown away.
    """

    ledger: WinnerLedger
    pool: list[int]
    current_tier_index: int
    all_finished: bool
    discarded: bool = False


@dataclass(frozen=True)
class ReconfigurePlan:
    """Outcome of comparing a configuration edit with recorded winners."""

    needs_reset: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)


def locate_current_tier(config: DrawConfig, ledger: WinnerLedger) -> tuple[int, bool]:
    """Return ``(current_tier_index, all_finished)`` for ``ledger``."""
    for index, tier in enumerate(config.tiers):
        if ledger.drawn_count(index) < tier.capacity:
            return index, False
    return 0, True


def derive_state(config: DrawConfig, ledger: WinnerLedger) -> ReconciledState:
    """Build pool and cursor from a ledger already known to match ``config``."""
    pool = build_pool(config.min_number, config.max_number, ledger)
    index, finished = locate_current_tier(config, ledger)
    return ReconciledState(
        ledger=ledger,
        pool=pool,
        current_tier_index=index,
        all_finished=finished,
    )


def fresh_state(config: DrawConfig, *, discarded: bool = False) -> ReconciledState:
    state = derive_state(config, WinnerLedger.empty(len(config.tiers)))
    state.discarded = discarded
    return state


def plan_reconfiguration(
    ledger: WinnerLedger, new_config: DrawConfig
) -> ReconfigurePlan:
    """Decide whether ``new_config`` can keep the recorded winners.

    A reset is needed when the tier count changes, because tiers are matched
    by position, or when a tier's new capacity is below its drawn count. An
    edit made before any number was drawn never needs one.
    """
    if not ledger.numbers():
        return ReconfigurePlan(needs_reset=False)
    if len(ledger) != len(new_config.tiers):
        return ReconfigurePlan(
            needs_reset=True,
            reasons=(
                f"tier count changed from {len(ledger)} to {len(new_config.tiers)}",
            ),
        )
    reasons = tuple(
        f"tier {index} ('{tier.name}') capacity {tier.capacity} is below "
        f"{ledger.drawn_count(index)} drawn"
        for index, tier in enumerate(new_config.tiers)
        if tier.capacity < ledger.drawn_count(index)
    )
    return ReconfigurePlan(needs_reset=bool(reasons), reasons=reasons)


def ensure_range_covers(ledger: WinnerLedger, config: DrawConfig) -> None:
    """Reject a range that would leave drawn numbers outside it.

    Raises
    ------
    InvalidRangeError
        If any recorded winner falls outside ``config``'s range.
    """
    stranded = sorted(
        n for n in ledger.numbers() if not config.min_number <= n <= config.max_number
    )
    if stranded:
        raise InvalidRangeError(
            f"Range [{config.min_number}, {config.max_number}] excludes already "
            f"drawn numbers {stranded}"
        )


class ReconciliationPolicy:
    """Loads persisted records and repairs them against a configuration."""

    def __init__(self, store: PersistenceStore) -> None:
        self._store = store

    def load_config(self) -> DrawConfig:
        """Return the persisted configuration, or the default one.

        A missing, malformed or invalid record falls back to
        :func:`default_config`; the stored record is left untouched.
        """
        payload = self._store.load(CONFIG_KEY)
        if payload is None:
            return default_config()
        try:
            return DrawConfig.from_json(payload)
        except InvalidConfigError as exc:
            logger.warning(f"Persisted configuration rejected, using defaults: {exc}")
            return default_config()

    def persisted_tiers(self) -> Optional[tuple[Tier, ...]]:
        payload = self._store.load(CONFIG_KEY)
        if payload is None:
            return None
        try:
            return DrawConfig.from_json(payload).tiers
        except InvalidConfigError:
            return None

    def startup(self, config: DrawConfig) -> ReconciledState:
        """Rebuild engine state for ``config`` from the persisted ledger.

        Notes
        -----
        1. No ledger record: start with one empty list per tier.
        2. Malformed record or a ledger that does not match ``config`` (tier
           count, capacity, duplicates, range): discard it, clear the
           persisted key and start empty.
        3. Otherwise keep it, drop its numbers from the pool and point the
           cursor at the first tier with remaining capacity.
        """
        payload = self._store.load(LEDGER_KEY)
        if payload is None:
            return fresh_state(config)

        ledger = WinnerLedger.from_json(payload)
        if ledger is None:
            logger.warning("Persisted ledger is malformed, discarding it")
            self._store.clear(LEDGER_KEY)
            return fresh_state(config, discarded=True)

        try:
            ledger.validate_against(config)
        except ConfigMismatchError as exc:
            logger.info(f"Discarding persisted ledger: {exc}")
            self._store.clear(LEDGER_KEY)
            return fresh_state(config, discarded=True)

        return derive_state(config, ledger)

    def plan(self, ledger: WinnerLedger, new_config: DrawConfig) -> ReconfigurePlan:
        return plan_reconfiguration(ledger, new_config)


__all__ = [
    "ReconciledState",
    "ReconciliationPolicy",
    "ReconfigurePlan",
    "derive_state",
    "ensure_range_covers",
    "fresh_state",
    "locate_current_tier",
    "plan_reconfiguration",
]
