# src/cert_scan/errors.py

"""Exception taxonomy raised by checks and captured by Scanner.scan."""

from typing import Optional

from cert_scan.grade import Grade


class ScanError(Exception):
    """Base class for every error a check may raise.

    ``grade`` is the grade recorded next to the error in the scan result.
    Callers must still treat the grade as undefined whenever an error is set.
    """
    grade = Grade.SKIPPED

    def __init__(self, message: str, grade: Optional[Grade] = None):
        super().__init__(message)
        if grade is not None:
            self.grade = grade


class ConnectionFailed(ScanError):
    """Dialing the host or completing the TLS handshake failed."""

    def __init__(self, message: str, host: Optional[str] = None, port: Optional[int] = None):
        super().__init__(message)
        self.host = host
        self.port = port


class VerificationError(ScanError):
    """The peer chain failed a hard check (hostname, CA flag, key ids, signature)."""

    def __init__(self, message: str, subject: Optional[str] = None, grade: Optional[Grade] = None):
        super().__init__(message, grade=grade)
        self.subject = subject


class InvalidGradeError(ScanError):
    """A check produced a value that is not a Grade."""
