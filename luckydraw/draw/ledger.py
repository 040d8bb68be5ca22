"""Per-tier record of already drawn numbers."""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Optional

from .config import DrawConfig
from .errors import ConfigMismatchError


class WinnerLedger:
    """Ordered drawn lists, one per tier index, in draw order."""

    def __init__(self, drawn: Iterable[Iterable[int]] = ()) -> None:
        self._drawn: list[list[int]] = [list(numbers) for numbers in drawn]

    @classmethod
    def empty(cls, tier_count: int) -> "WinnerLedger":
        return cls([] for _ in range(tier_count))

    @classmethod
    def from_json(cls, payload: Any) -> Optional["WinnerLedger"]:
        """Parse a persisted ledger, returning ``None`` when it is malformed."""
        if not isinstance(payload, list):
            return None
        drawn: list[list[int]] = []
        for numbers in payload:
            if not isinstance(numbers, list):
                return None
            if any(isinstance(n, bool) or not isinstance(n, int) for n in numbers):
                return None
            drawn.append(list(numbers))
        return cls(drawn)

    def to_json(self) -> list[list[int]]:
        return [list(numbers) for numbers in self._drawn]

    def __len__(self) -> int:
        return len(self._drawn)

    def __iter__(self) -> Iterator[list[int]]:
        return iter(self.to_json())

    def __getitem__(self, index: int) -> list[int]:
        return list(self._drawn[index])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WinnerLedger):
            return NotImplemented
        return self._drawn == other._drawn

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"WinnerLedger({self._drawn!r})"

    def drawn_count(self, index: int) -> int:
        return len(self._drawn[index])

    def numbers(self) -> list[int]:
        """Return every drawn number across tiers."""
        return [n for numbers in self._drawn for n in numbers]

    def record(self, index: int, number: int) -> None:
        self._drawn[index].append(number)

    def copy(self) -> "WinnerLedger":
        return WinnerLedger(self._drawn)

    def validate_against(self, config: DrawConfig) -> None:
        """Ensure the ledger can be trusted for ``config``.

        Raises
        ------
        ConfigMismatchError
            If the tier counts differ, a tier holds more winners than its
            capacity, a number repeats, or a number lies outside the range.
        """
        if len(self._drawn) != len(config.tiers):
            raise ConfigMismatchError(
                f"Ledger has {len(self._drawn)} tiers but configuration has "
                f"{len(config.tiers)}"
            )
        for index, (numbers, tier) in enumerate(zip(self._drawn, config.tiers)):
            if len(numbers) > tier.capacity:
                raise ConfigMismatchError(
                    f"Tier {index} holds {len(numbers)} winners but capacity is "
                    f"{tier.capacity}"
                )
        seen: set[int] = set()
        for number in self.numbers():
            if number in seen:
                raise ConfigMismatchError(f"Number {number} was drawn more than once")
            if not config.min_number <= number <= config.max_number:
                raise ConfigMismatchError(
                    f"Number {number} lies outside "
                    f"[{config.min_number}, {config.max_number}]"
                )
            seen.add(number)


__all__ = ["WinnerLedger"]
