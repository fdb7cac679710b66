"""Pagination windows for ``/messages`` requests."""

from __future__ import annotations

from dataclasses import dataclass

from .anchor import FIRST_UNREAD_ANCHOR, Anchor, validate_anchor


@dataclass(frozen=True)
class FetchWindow:
    """How many messages to request on each side of ``anchor``."""

    anchor: Anchor
    num_before: int
    num_after: int

    def __post_init__(self) -> None:
        validate_anchor(self.anchor)
        if self.num_before < 0 or self.num_after < 0:
            raise ValueError("message counts must be non-negative")
        if self.num_before + self.num_after == 0:
            raise ValueError("a fetch window must request at least one message")


def older_window(boundary_id: int, per_page: int) -> FetchWindow:
    """Page of ``per_page`` messages ending at the oldest known message."""

    return FetchWindow(anchor=boundary_id, num_before=per_page, num_after=0)


def newer_window(boundary_id: int, per_page: int) -> FetchWindow:
    """Page of ``per_page`` messages starting at the newest known message."""

    return FetchWindow(anchor=boundary_id, num_before=0, num_after=per_page)


def centered_window(per_page: int, anchor: Anchor = FIRST_UNREAD_ANCHOR) -> FetchWindow:
    """Half a page on each side of ``anchor``, for opening a narrow fresh."""

    half = per_page // 2
    return FetchWindow(anchor=anchor, num_before=half, num_after=half)


__all__ = ["FetchWindow", "centered_window", "newer_window", "older_window"]
