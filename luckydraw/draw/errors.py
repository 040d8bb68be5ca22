"""Exceptions raised by the draw subsystem."""


class DrawError(Exception):
    """Base class for every recoverable draw error."""


class InvalidConfigError(DrawError, ValueError):
    """A configuration value is outside its allowed domain."""


class InvalidRangeError(InvalidConfigError):
    """The number range is empty or inverted, or strands drawn numbers."""


class RangeTooLargeError(InvalidConfigError):
    """The number range exceeds the supported width."""


class PoolExhaustedError(DrawError):
    """No numbers remain although the current tier still has capacity."""


class OperationInvalidError(DrawError):
    """The operation is not allowed in the engine's current state."""


class TierExhaustedError(DrawError):
    """The selected tier has no remaining capacity."""


class ConfigMismatchError(DrawError):
    """A winner ledger does not line up with the configured tiers."""


__all__ = [
    "ConfigMismatchError",
    "DrawError",
    "InvalidConfigError",
    "InvalidRangeError",
    "OperationInvalidError",
    "PoolExhaustedError",
    "RangeTooLargeError",
    "TierExhaustedError",
]
