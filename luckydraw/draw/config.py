"""Draw configuration value objects and their boundary normalization."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from .errors import InvalidConfigError
from .pool import validate_range

MAX_TITLE_LENGTH = 10
DEFAULT_TITLE = "Lucky Draw"
DEFAULT_MIN_NUMBER = 1
DEFAULT_MAX_NUMBER = 200


def _require_int(value: Any, label: str) -> int:
    # bool is an int subclass but never a meaningful number here
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigError(f"{label} must be an integer, got {value!r}")
    return value


@dataclass(frozen=True)
class Tier:
    """One prize level.

    Attributes
    ----------
    name : str
        Display label. Several tiers may share a name; tiers are identified by
        their position in :attr:`DrawConfig.tiers`.
    capacity : int
        Number of winners the tier accepts. Must be at least 1.
    """

    name: str
    capacity: int

    def to_json(self) -> dict[str, Any]:
        return {"name": self.name, "capacity": self.capacity}

    @classmethod
    def from_json(cls, payload: Any) -> "Tier":
        if not isinstance(payload, Mapping):
            raise InvalidConfigError(f"Tier record must be an object, got {payload!r}")
        name = payload.get("name")
        if not isinstance(name, str):
            raise InvalidConfigError(f"Tier name must be a string, got {name!r}")
        capacity = _require_int(payload.get("capacity"), "Tier capacity")
        return cls(name=name, capacity=capacity)


@dataclass(frozen=True)
class DrawConfig:
    """Complete configuration of a draw.

    Attributes
    ----------
    title : str
        Event title shown above the draw, at most ten characters.
    min_number : int
        Smallest drawable number (inclusive).
    max_number : int
        Largest drawable number (inclusive).
    tiers : tuple[Tier, ...]
        Prize tiers in their default visiting order.
    """

    title: str
    min_number: int
    max_number: int
    tiers: tuple[Tier, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept any sequence of tiers but store an immutable tuple.
        object.__setattr__(self, "tiers", tuple(self.tiers))

    @property
    def capacities(self) -> list[int]:
        return [tier.capacity for tier in self.tiers]

    def validate(self) -> "DrawConfig":
        """Check every invariant and return ``self`` for chaining.

        Raises
        ------
        InvalidRangeError
            If the range is empty or inverted.
        RangeTooLargeError
            If the range is wider than allowed.
        InvalidConfigError
            If the title is too long, no tier is configured, or a tier has a
            capacity below 1.
        """
        if not isinstance(self.title, str) or len(self.title) > MAX_TITLE_LENGTH:
            raise InvalidConfigError(
                f"Title must be a string of at most {MAX_TITLE_LENGTH} characters"
            )
        _require_int(self.min_number, "minNumber")
        _require_int(self.max_number, "maxNumber")
        validate_range(self.min_number, self.max_number)
        if not self.tiers:
            raise InvalidConfigError("At least one tier must be configured")
        for index, tier in enumerate(self.tiers):
            if _require_int(tier.capacity, f"Tier {index + 1} capacity") < 1:
                raise InvalidConfigError(
                    f"Tier {index + 1} ('{tier.name}') capacity must be at least 1"
                )
        return self

    def with_tiers(self, tiers: Iterable[Tier]) -> "DrawConfig":
        return replace(self, tiers=tuple(tiers))

    def to_json(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "minNumber": self.min_number,
            "maxNumber": self.max_number,
            "tiers": [tier.to_json() for tier in self.tiers],
        }

    @classmethod
    def from_json(cls, payload: Any) -> "DrawConfig":
        """Rebuild a validated configuration from its persisted record.

        Raises
        ------
        InvalidConfigError
            If the record is structurally malformed or violates an invariant.
        """
        if not isinstance(payload, Mapping):
            raise InvalidConfigError("Configuration record must be an object")
        title = payload.get("title", DEFAULT_TITLE)
        tiers = payload.get("tiers")
        if not isinstance(tiers, list):
            raise InvalidConfigError("Configuration record must contain a tier list")
        config = cls(
            title=title,
            min_number=_require_int(payload.get("minNumber"), "minNumber"),
            max_number=_require_int(payload.get("maxNumber"), "maxNumber"),
            tiers=tuple(Tier.from_json(entry) for entry in tiers),
        )
        return config.validate()


def default_tiers() -> tuple[Tier, ...]:
    return (
        Tier("First Prize", 1),
        Tier("Second Prize", 2),
        Tier("Third Prize", 3),
        Tier("Lucky Prize", 5),
    )


def default_config() -> DrawConfig:
    """Return the configuration used when nothing usable is persisted."""
    return DrawConfig(
        title=DEFAULT_TITLE,
        min_number=DEFAULT_MIN_NUMBER,
        max_number=DEFAULT_MAX_NUMBER,
        tiers=default_tiers(),
    )


def normalize_title(raw: Optional[str]) -> str:
    """Trim ``raw``, fall back to the default title and clamp its length."""
    text = (raw or "").strip() or DEFAULT_TITLE
    return text[:MAX_TITLE_LENGTH]


def parse_number(raw: Union[str, int, None], label: str) -> int:
    """Parse a user-supplied bound into an integer.

    Raises
    ------
    InvalidConfigError
        If ``raw`` is missing or not an integer literal.
    """
    if isinstance(raw, bool):
        raise InvalidConfigError(f"{label} must be an integer")
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError) as exc:
        raise InvalidConfigError(f"{label} must be an integer, got {raw!r}") from exc


TierInput = Union[Tier, Mapping[str, Any], Sequence[Any]]


def normalize_tiers(entries: Iterable[TierInput]) -> tuple[Tier, ...]:
    """Turn raw tier edits into :class:`Tier` objects.

    Each entry may be a :class:`Tier`, a mapping with ``name``/``capacity`` keys,
    or a ``(name, capacity)`` pair. Blank names become ``"Tier N"`` and blank or
    zero capacities become 1. Negative or non-numeric capacities are rejected.
    """
    tiers: list[Tier] = []
    for index, entry in enumerate(entries):
        label = f"Tier {index + 1}"
        if isinstance(entry, Tier):
            name, capacity = entry.name, entry.capacity
        elif isinstance(entry, Mapping):
            name, capacity = entry.get("name"), entry.get("capacity")
        elif isinstance(entry, Sequence) and not isinstance(entry, str) and len(entry) == 2:
            name, capacity = entry
        else:
            raise InvalidConfigError(f"{label} must be a (name, capacity) pair")
        if name is not None and not isinstance(name, str):
            raise InvalidConfigError(f"{label} name must be a string, got {name!r}")
        name = (name or "").strip() or label
        if capacity is None or (isinstance(capacity, str) and not capacity.strip()):
            parsed = 1
        else:
            parsed = parse_number(capacity, f"{label} capacity") or 1
        if parsed < 1:
            raise InvalidConfigError(f"{label} capacity must be at least 1")
        tiers.append(Tier(name=name, capacity=parsed))
    return tuple(tiers)


__all__ = [
    "DEFAULT_MAX_NUMBER",
    "DEFAULT_MIN_NUMBER",
    "DEFAULT_TITLE",
    "DrawConfig",
    "MAX_TITLE_LENGTH",
    "Tier",
    "default_config",
    "default_tiers",
    "normalize_tiers",
    "normalize_title",
    "parse_number",
]
