import pytest

from chatsync.runtime.anchor import FIRST_UNREAD_ANCHOR, NEWEST_ANCHOR
from chatsync.runtime.fetch_window import (
    FetchWindow,
    centered_window,
    newer_window,
    older_window,
)


def test_older_window_anchors_at_oldest_known_message():
    window = older_window(1000, 50)
    assert window == FetchWindow(anchor=1000, num_before=50, num_after=0)


def test_newer_window_anchors_at_newest_known_message():
    window = newer_window(1234, 50)
    assert window == FetchWindow(anchor=1234, num_before=0, num_after=50)


def test_centered_window_defaults_to_first_unread():
    window = centered_window(50)
    assert window.anchor == FIRST_UNREAD_ANCHOR
    assert window.num_before == window.num_after == 25


def test_centered_window_accepts_explicit_anchor():
    assert centered_window(40, NEWEST_ANCHOR) == FetchWindow(NEWEST_ANCHOR, 20, 20)
    assert centered_window(40, 555).anchor == 555


def test_centered_window_rounds_odd_page_down():
    window = centered_window(51)
    assert (window.num_before, window.num_after) == (25, 25)


@pytest.mark.parametrize(
    "anchor,before,after",
    [
        (10, 0, 0),
        (10, -1, 5),
        ("oldest", 5, 5),
        (-3, 5, 0),
        (True, 5, 0),
    ],
)
def test_invalid_windows_are_rejected(anchor, before, after):
    with pytest.raises(ValueError):
        FetchWindow(anchor=anchor, num_before=before, num_after=after)
