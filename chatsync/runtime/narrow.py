from __future__ import annotations

"""Conversation scopes ("narrows") and their wire form.

Each narrow is an immutable value; two narrows describing the same view
compare equal and hash alike, so they can key per-scope fetch state.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Union


@dataclass(frozen=True)
class HomeNarrow:
    """All messages the user can see."""


@dataclass(frozen=True)
class StreamNarrow:
    stream: str


@dataclass(frozen=True)
class TopicNarrow:
    stream: str
    topic: str


@dataclass(frozen=True)
class PmNarrow:
    """A private conversation, identified by its other participants."""

    user_ids: tuple[int, ...]

    @classmethod
    def of(cls, user_ids: Iterable[int]) -> "PmNarrow":
        ids = tuple(sorted(set(int(uid) for uid in user_ids)))
        if not ids:
            raise ValueError("a private narrow needs at least one user id")
        return cls(ids)


@dataclass(frozen=True)
class AllPrivateNarrow:
    """Every private conversation."""


@dataclass(frozen=True)
class StarredNarrow:
    pass


@dataclass(frozen=True)
class MentionedNarrow:
    pass


@dataclass(frozen=True)
class SearchNarrow:
    query: str


Narrow = Union[
    HomeNarrow,
    StreamNarrow,
    TopicNarrow,
    PmNarrow,
    AllPrivateNarrow,
    StarredNarrow,
    MentionedNarrow,
    SearchNarrow,
]

HOME_NARROW = HomeNarrow()
ALL_PRIVATE_NARROW = AllPrivateNarrow()
STARRED_NARROW = StarredNarrow()
MENTIONED_NARROW = MentionedNarrow()

ApiNarrow = list[dict[str, str]]


def _element(operator: str, operand: str) -> dict[str, str]:
    return {"operator": operator, "operand": operand}


def api_narrow_of_narrow(narrow: Narrow, users_by_id: Mapping[int, str]) -> ApiNarrow:
    """Translate ``narrow`` into the filter list the server expects.

    ``users_by_id`` maps user ids to emails; private narrows are addressed by
    email, so every participant must be known. A missing id raises
    ``KeyError``.
    """

    if isinstance(narrow, HomeNarrow):
        return []
    if isinstance(narrow, StreamNarrow):
        return [_element("stream", narrow.stream)]
    if isinstance(narrow, TopicNarrow):
        return [_element("stream", narrow.stream), _element("topic", narrow.topic)]
    if isinstance(narrow, PmNarrow):
        emails = [users_by_id[uid] for uid in narrow.user_ids]
        return [_element("pm-with", ",".join(emails))]
    if isinstance(narrow, AllPrivateNarrow):
        return [_element("is", "private")]
    if isinstance(narrow, StarredNarrow):
        return [_element("is", "starred")]
    if isinstance(narrow, MentionedNarrow):
        return [_element("is", "mentioned")]
    if isinstance(narrow, SearchNarrow):
        return [_element("search", narrow.query)]
    raise TypeError(f"unsupported narrow: {narrow!r}")


def parse_narrow(text: str) -> Narrow:
    """Parse the compact command-line form of a narrow.

    Accepted forms: ``home``, ``all-pm``, ``starred``, ``mentioned``,
    ``stream:NAME``, ``topic:STREAM/TOPIC``, ``pm:ID[,ID...]`` and
    ``search:TEXT``.
    """

    kind, _, value = text.partition(":")
    kind = kind.strip().lower()
    if kind == "home" and not value:
        return HOME_NARROW
    if kind == "all-pm" and not value:
        return ALL_PRIVATE_NARROW
    if kind == "starred" and not value:
        return STARRED_NARROW
    if kind == "mentioned" and not value:
        return MENTIONED_NARROW
    if kind == "stream" and value:
        return StreamNarrow(value)
    if kind == "topic" and "/" in value:
        stream, _, topic = value.partition("/")
        if stream and topic:
            return TopicNarrow(stream, topic)
    if kind == "pm" and value:
        try:
            return PmNarrow.of(int(part) for part in value.split(","))
        except ValueError as exc:
            raise ValueError(f"invalid private narrow: {text!r}") from exc
    if kind == "search" and value:
        return SearchNarrow(value)
    raise ValueError(f"invalid narrow: {text!r}")


__all__ = [
    "ALL_PRIVATE_NARROW",
    "AllPrivateNarrow",
    "ApiNarrow",
    "HOME_NARROW",
    "HomeNarrow",
    "MENTIONED_NARROW",
    "MentionedNarrow",
    "Narrow",
    "PmNarrow",
    "STARRED_NARROW",
    "SearchNarrow",
    "StarredNarrow",
    "StreamNarrow",
    "TopicNarrow",
    "api_narrow_of_narrow",
    "parse_narrow",
]
