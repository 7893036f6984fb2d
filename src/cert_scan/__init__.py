# src/cert_scan/__init__.py

"""Pluggable TLS certificate scanners grouped into families."""

__version__ = "1.0.0"

from cert_scan.grade import Grade, Output, OutputString, CertNames, Expiration
from cert_scan.errors import ScanError, ConnectionFailed, VerificationError, InvalidGradeError
from cert_scan.scan_common import ScanResult, Scanner, Family

__all__ = [
    "__version__",
    "Grade", "Output", "OutputString", "CertNames", "Expiration",
    "ScanError", "ConnectionFailed", "VerificationError", "InvalidGradeError",
    "ScanResult", "Scanner", "Family",
]
