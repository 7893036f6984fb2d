# src/cert_scan/grade.py

"""
Grades and the stringifiable outputs that accompany them.

A grade is the coarse verdict of a single scanner. The output is whatever the
scanner wants to show next to it: every variant renders itself with str() and
keeps its structured value for callers that want more than text.
"""

import abc
import datetime
import enum
from dataclasses import dataclass
from typing import Tuple


class Grade(enum.IntEnum):
    """Outcome of a scan. SKIPPED is the zero value."""
    SKIPPED = 0
    BAD = 1
    WARNING = 2
    GOOD = 3

    def __str__(self) -> str:
        return self.name.capitalize()


class Output(abc.ABC):
    """Anything a scanner can attach to its grade; only str() is required."""

    @abc.abstractmethod
    def __str__(self) -> str:
        ...


@dataclass(frozen=True)
class OutputString(Output):
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CertNames(Output):
    """Certificate names, rendered comma separated."""
    names: Tuple[str, ...]

    def __str__(self) -> str:
        return ",".join(self.names)


@dataclass(frozen=True)
class Expiration(Output):
    """An expiration timestamp, rendered like 'Jan 2 15:04:05 2006 UTC'."""
    when: datetime.datetime

    def __str__(self) -> str:
        when = self.when
        if when.tzinfo is None:
            when = when.replace(tzinfo=datetime.timezone.utc)
        return f"{when:%b} {when.day} {when:%H:%M:%S %Y %Z}"
