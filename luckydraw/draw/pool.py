"""Helpers for deriving the pool of numbers still eligible to be drawn."""

from __future__ import annotations

from typing import Iterable

from .errors import InvalidRangeError, RangeTooLargeError

MAX_RANGE_WIDTH = 10000


def validate_range(min_number: int, max_number: int) -> None:
    """Reject ranges that are inverted, empty or too wide.

    Parameters
    ----------
    min_number : int
        Smallest drawable number (inclusive).
    max_number : int
        Largest drawable number (inclusive).

    Raises
    ------
    InvalidRangeError
        If ``min_number >= max_number``.
    RangeTooLargeError
        If ``max_number - min_number`` exceeds :data:`MAX_RANGE_WIDTH`.
    """

    if min_number >= max_number:
        raise InvalidRangeError(
            f"minNumber ({min_number}) must be less than maxNumber ({max_number})"
        )
    if max_number - min_number > MAX_RANGE_WIDTH:
        raise RangeTooLargeError(
            f"Range width {max_number - min_number} exceeds {MAX_RANGE_WIDTH}"
        )


def build_pool(
    min_number: int,
    max_number: int,
    ledger: Iterable[Iterable[int]] = (),
) -> list[int]:
    """Return the ascending list of numbers in range that were not yet drawn.

    Parameters
    ----------
    min_number : int
        Smallest drawable number (inclusive).
    max_number : int
        Largest drawable number (inclusive).
    ledger : Iterable[Iterable[int]], default: ()
        Drawn numbers grouped per tier. Numbers outside the range are ignored.

    Returns
    -------
    list[int]
        Remaining numbers in ascending order.
    """

    validate_range(min_number, max_number)
    drawn = {number for drawn_list in ledger for number in drawn_list}
    return [n for n in range(min_number, max_number + 1) if n not in drawn]


__all__ = ["MAX_RANGE_WIDTH", "build_pool", "validate_range"]
