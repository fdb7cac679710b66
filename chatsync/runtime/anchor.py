"""Symbolic anchors understood by the ``/messages`` endpoint."""

from __future__ import annotations

from typing import Literal, Union

FIRST_UNREAD_ANCHOR: Literal["first_unread"] = "first_unread"
NEWEST_ANCHOR: Literal["newest"] = "newest"

SymbolicAnchor = Literal["first_unread", "newest"]
Anchor = Union[int, SymbolicAnchor]

_SYMBOLIC = frozenset({FIRST_UNREAD_ANCHOR, NEWEST_ANCHOR})


def validate_anchor(anchor: object) -> Anchor:
    """Return ``anchor`` unchanged or raise ``ValueError`` when unusable."""

    if isinstance(anchor, bool):
        raise ValueError("anchor must be a message id or a symbolic anchor")
    if isinstance(anchor, int):
        if anchor < 0:
            raise ValueError(f"anchor message id must be non-negative: {anchor}")
        return anchor
    if anchor in _SYMBOLIC:
        return anchor  # type: ignore[return-value]
    raise ValueError(f"unknown anchor: {anchor!r}")


__all__ = [
    "Anchor",
    "FIRST_UNREAD_ANCHOR",
    "NEWEST_ANCHOR",
    "SymbolicAnchor",
    "validate_anchor",
]
