# src/cert_scan/scan_common.py

"""
Scanner and Family: the registry side of cert_scan.

A Scanner wraps a single check, a callable taking a ``host:port`` string and
returning a ``(Grade, Output)`` pair or raising a ScanError. ``Scanner.scan``
never raises for a failed check: the error is returned in the ScanResult.
A Family is a read-only, ordered mapping of scanner names to Scanners.
"""

import logging
import re
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping, NamedTuple, Optional, Tuple

from cert_scan.errors import ConnectionFailed, InvalidGradeError, ScanError
from cert_scan.grade import Grade, Output, OutputString

logger = logging.getLogger(__name__)

Check = Callable[[str], Tuple[Grade, Optional[Output]]]


class ScanResult(NamedTuple):
    """Grade, output and error of one scan. Grade and output are undefined when error is set."""
    grade: Grade
    output: Optional[Output]
    error: Optional[Exception]

    @property
    def ok(self) -> bool:
        return self.error is None


class Scanner:
    """A named unit of work against a host, described for humans."""

    def __init__(self, description: str, check: Check):
        self.description = description
        self.check = check

    def __repr__(self) -> str:
        return f"Scanner({self.description!r})"

    def scan(self, host: str) -> ScanResult:
        """Run the check against ``host`` and capture its outcome."""
        try:
            grade, output = self.check(host)
        except ScanError as e:
            logger.debug(f"Scan of {host} failed: {e}")
            return ScanResult(e.grade, None, e)
        except OSError as e:
            logger.debug(f"Scan of {host} failed with OS error: {e}")
            err = ConnectionFailed(str(e))
            err.__cause__ = e
            return ScanResult(Grade.SKIPPED, None, err)

        if not isinstance(grade, Grade):
            return ScanResult(Grade.SKIPPED, None, InvalidGradeError(f"scan: invalid grade {grade!r}"))
        if isinstance(output, str):
            output = OutputString(output)
        return ScanResult(grade, output, None)

    __call__ = scan


class Family:
    """A named, ordered, read-only collection of Scanners."""

    def __init__(self, description: str, scanners: Mapping[str, Scanner]):
        self.description = description
        self.scanners = MappingProxyType(dict(scanners))

    def __repr__(self) -> str:
        return f"Family({self.description!r}, scanners={list(self.scanners)})"

    def lookup(self, name: str) -> Scanner:
        """Return the scanner registered under ``name``; KeyError if there is none."""
        return self.scanners[name]

    def get(self, name: str, default: Any = None) -> Optional[Scanner]:
        return self.scanners.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self.scanners

    def __len__(self) -> int:
        return len(self.scanners)

    def __iter__(self) -> Iterator[str]:
        return iter(self.scanners)

    def items(self) -> Iterator[Tuple[str, Scanner]]:
        return iter(self.scanners.items())

    def describe(self) -> Iterator[Tuple[str, str]]:
        """Yield ``(name, description)`` for every scanner, in registration order."""
        for name, scanner in self.scanners.items():
            yield name, scanner.description

    def select(self, pattern: str) -> "Family":
        """Return a new Family holding only the scanners whose name matches ``pattern``."""
        regexp = re.compile(pattern)
        return Family(self.description, {name: scanner for name, scanner in self.scanners.items()
                                         if regexp.search(name)})
