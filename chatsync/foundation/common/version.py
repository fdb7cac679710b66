from __future__ import annotations

"""Comparable server version values."""

import re
from dataclasses import dataclass, field
from functools import total_ordering

_NUMBERS_RE = re.compile(r"^\d+(?:\.\d+)*")
_FLAG_RE = re.compile(r"^[.-](?P<flag>dev|alpha|beta|rc)(?P<flag_num>\d+)?")
_COMMITS_RE = re.compile(r"-(?P<commits>\d+)-g[0-9a-f]+")

# Pre-release flags sort before the plain release of the same number.
_FLAG_RANK: dict[str | None, int] = {
    "dev": 0,
    "alpha": 1,
    "beta": 2,
    "rc": 3,
    None: 4,
}


@total_ordering
@dataclass(frozen=True)
class ServerVersion:
    """Version string reported by the server's ``/server_settings``.

    Release versions (``"2.1.3"``), release candidates (``"3.0-rc1"``) and
    development builds (``"4.0-dev-523-g1cd8b9b"``, ``"2.2.dev+git"``) are
    understood. Numeric components are compared with trailing zeros
    ignored, so ``"2.1"`` equals ``"2.1.0"``. Anything after the recognised
    parts is ignored, and a string without a leading number sorts below
    every real version.
    """

    raw: str
    numbers: tuple[int, ...] = field(init=False, compare=False)
    flag: str | None = field(init=False, compare=False)
    flag_number: int = field(init=False, compare=False)
    commits: int = field(init=False, compare=False)

    def __post_init__(self) -> None:
        text = self.raw.strip()
        numbers: list[int] = []
        flag: str | None = None
        flag_number = 0
        commits = 0
        match = _NUMBERS_RE.match(text)
        if match is not None:
            numbers = [int(part) for part in match.group(0).split(".")]
            while len(numbers) > 1 and numbers[-1] == 0:
                numbers.pop()
            rest = text[match.end():]
            flag_match = _FLAG_RE.match(rest)
            if flag_match is not None:
                flag = flag_match.group("flag")
                flag_number = int(flag_match.group("flag_num") or 0)
            commits_match = _COMMITS_RE.search(rest)
            if commits_match is not None:
                commits = int(commits_match.group("commits"))
        object.__setattr__(self, "numbers", tuple(numbers))
        object.__setattr__(self, "flag", flag)
        object.__setattr__(self, "flag_number", flag_number)
        object.__setattr__(self, "commits", commits)

    def _key(self) -> tuple[tuple[int, ...], int, int, int]:
        return (self.numbers, _FLAG_RANK[self.flag], self.flag_number, self.commits)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServerVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "ServerVersion") -> bool:
        if not isinstance(other, ServerVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def is_at_least(self, other: "ServerVersion | str") -> bool:
        if isinstance(other, str):
            other = ServerVersion(other)
        return not self < other

    @property
    def is_known(self) -> bool:
        return bool(self.numbers)

    @property
    def major(self) -> int:
        return self.numbers[0] if self.numbers else 0

    def __str__(self) -> str:
        return self.raw


# First server release with the dedicated recent-private-conversations data.
MIN_RECENT_PM_VERSION = ServerVersion("2.1")


__all__ = ["MIN_RECENT_PM_VERSION", "ServerVersion"]
