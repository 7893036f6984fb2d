# src/cert_scan/pki.py

"""
Scanners for the Public Key Infrastructure.

Every policy takes the ``host:port`` to scan and the Dialer used to reach it,
and returns a ``(Grade, Output)`` pair. ``pki_family`` binds the policies to a
Dialer and registers them under their scanner names.
"""

import datetime
import functools
import logging
from typing import Dict, Optional, Tuple

from cert_scan.chain import expiry_time, split_host_port, validate_chain, weak_signatures
from cert_scan.connection import Dialer
from cert_scan.errors import VerificationError
from cert_scan.grade import CertNames, Expiration, Grade, Output, OutputString
from cert_scan.scan_common import Family, Scanner
from cert_scan.utils.cert_utils import cert_label

logger = logging.getLogger(__name__)

# --- Configuration ---
EXPIRY_WARNING_WINDOW = datetime.timedelta(days=30)

Verdict = Tuple[Grade, Optional[Output]]


def cert_expiration(host: str, dialer: Dialer) -> Verdict:
    """Grade the earliest expiration in the chain: BAD once expired, WARNING within 30 days."""
    certs = dialer.fetch_chain(host)
    expires = expiry_time(certs)
    if expires is None:
        logger.info(f"No expiration time found for {host}")
        return Grade.SKIPPED, None

    output = Expiration(expires)
    now = datetime.datetime.now(datetime.timezone.utc)
    if now > expires:
        return Grade.BAD, output
    if now + EXPIRY_WARNING_WINDOW > expires:
        return Grade.WARNING, output
    return Grade.GOOD, output


def chain_validation(host: str, dialer: Dialer) -> Verdict:
    """Verify the leaf hostname and every link of the chain; any failure is a BAD error."""
    certs = dialer.fetch_chain(host)
    hostname, _ = split_host_port(host)
    validate_chain(certs, hostname, grade=Grade.BAD)
    return Grade.GOOD, CertNames(tuple(cert_label(cert) for cert in certs))


def revocation(host: str, dialer: Dialer) -> Verdict:
    # CRL and OCSP fetching are not implemented; nothing is dialed.
    return Grade.SKIPPED, None


def chain_sha1(host: str, dialer: Dialer) -> Verdict:
    """Look for SHA-1 signatures anywhere in the chain."""
    certs = dialer.fetch_chain(host)
    try:
        findings = weak_signatures(certs)
    except VerificationError as e:
        e.grade = Grade.BAD
        raise

    if not findings:
        return Grade.GOOD, None
    return Grade.BAD, OutputString("\n".join(findings))


SCANNERS = (
    ("CertExpiration", "Host's certificate hasn't expired", cert_expiration),
    ("ChainValidation", "All certificates in host's chain are valid", chain_validation),
    ("Revocation", "CRL and/or OCSP revocation responses correct", revocation),
    ("SHA-1", "Checks for any weak SHA-1 hashes in certificate chain", chain_sha1),
)


def pki_family(dialer: Optional[Dialer] = None) -> Family:
    """Build the PKI family with its scanners bound to ``dialer``."""
    dialer = dialer or Dialer()
    return Family(
        "Scans for the Public Key Infrastructure",
        {name: Scanner(description, functools.partial(policy, dialer=dialer))
         for name, description, policy in SCANNERS},
    )


def default_families(dialer: Optional[Dialer] = None) -> Dict[str, Family]:
    """All families known to cert_scan, keyed by family name."""
    return {"PKI": pki_family(dialer)}
