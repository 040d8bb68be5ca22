"""Draw state engine: tiers, pool, winner ledger and their reconciliation."""

from .config import DrawConfig, Tier, default_config, normalize_tiers, normalize_title
from .engine import (
    DrawListener,
    DrawPhase,
    DrawStateEngine,
    EngineSnapshot,
    ReconfigureOutcome,
)
from .errors import (
    ConfigMismatchError,
    DrawError,
    InvalidConfigError,
    InvalidRangeError,
    OperationInvalidError,
    PoolExhaustedError,
    RangeTooLargeError,
    TierExhaustedError,
)
from .ledger import WinnerLedger
from .pool import MAX_RANGE_WIDTH, build_pool
from .reconcile import ReconciledState, ReconciliationPolicy, ReconfigurePlan

__all__ = [
    "ConfigMismatchError",
    "DrawConfig",
    "DrawError",
    "DrawListener",
    "DrawPhase",
    "DrawStateEngine",
    "EngineSnapshot",
    "InvalidConfigError",
    "InvalidRangeError",
    "MAX_RANGE_WIDTH",
    "OperationInvalidError",
    "PoolExhaustedError",
    "RangeTooLargeError",
    "ReconciledState",
    "ReconciliationPolicy",
    "ReconfigureOutcome",
    "ReconfigurePlan",
    "Tier",
    "TierExhaustedError",
    "WinnerLedger",
    "build_pool",
    "default_config",
    "normalize_tiers",
    "normalize_title",
]
