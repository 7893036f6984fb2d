# src/cert_scan/chain.py

"""
Certificate chain analysis.

Chains are sequences of ``cryptography.x509.Certificate`` ordered leaf first,
as presented by the peer. Nothing here mutates or keeps the chain.

Hard failures (hostname mismatch, non-CA parent, key identifier mismatch,
bad signature, empty chain) raise VerificationError at the first offending
link. Weak signature algorithms are soft findings collected over the whole
chain.
"""

import datetime
import ipaddress
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.x509.oid import SignatureAlgorithmOID

from cert_scan.errors import VerificationError
from cert_scan.grade import Grade
from cert_scan.utils.cert_utils import (authority_key_id, cert_label, extract_ip_san, extract_san,
                                        get_common_name, get_signature_algorithm, has_san, is_ca,
                                        subject_key_id)

logger = logging.getLogger(__name__)

Chain = Sequence[x509.Certificate]

SHA1_SIGNATURE_ALGORITHMS = {
    SignatureAlgorithmOID.RSA_WITH_SHA1: "SHA1WithRSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA1: "ECDSAWithSHA1",
    SignatureAlgorithmOID.DSA_WITH_SHA1: "DSAWithSHA1",
}


def split_host_port(host: str) -> Tuple[str, Optional[str]]:
    """Split ``host:port`` into its parts. IPv6 literals must be bracketed when a port is given."""
    if host.startswith("["):
        end = host.find("]")
        if end == -1:
            raise ValueError(f"missing ']' in address {host}")
        rest = host[end + 1:]
        if rest and not rest.startswith(":"):
            raise ValueError(f"unexpected text after address in {host}")
        return host[1:end], (rest[1:] or None)
    if host.count(":") == 1:
        name, port = host.split(":")
        return name, (port or None)
    # bare hostname or unbracketed IPv6 literal
    return host, None


def _match_dns_name(pattern: str, hostname: str) -> bool:
    pattern = pattern.rstrip(".").lower()
    if not pattern:
        return False
    if pattern == hostname:
        return True
    labels = pattern.split(".")
    # only a whole left-most label wildcard, never on a bare TLD
    if labels[0] != "*" or len(labels) < 3:
        return False
    host_labels = hostname.split(".")
    if len(host_labels) != len(labels) or not host_labels[0]:
        return False
    return host_labels[1:] == labels[1:]


def verify_hostname(cert: x509.Certificate, hostname: str) -> None:
    """Check that the leaf certificate is valid for ``hostname``.

    DNS names are matched against the DNS SANs with left-most label wildcards,
    IP literals against the IP SANs. The subject Common Name is only used when
    the certificate has no SAN extension at all.
    """
    host = hostname.rstrip(".").lower()
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None

    if address is not None:
        matched = address in extract_ip_san(cert)
    elif has_san(cert):
        matched = any(_match_dns_name(name, host) for name in extract_san(cert))
    else:
        common_name = get_common_name(cert.subject)
        matched = common_name is not None and _match_dns_name(common_name, host)

    if not matched:
        raise VerificationError(f"Couldn't verify hostname {hostname}", subject=cert_label(cert))


def check_link(cert: x509.Certificate, parent: x509.Certificate) -> None:
    """Check that ``parent`` is a CA that issued and signed ``cert``."""
    if not is_ca(parent):
        raise VerificationError(f"{cert_label(parent)} is not a CA", subject=cert_label(parent))

    if authority_key_id(cert) != subject_key_id(parent):
        raise VerificationError("AuthorityKeyId differs from parent SubjectKeyId", subject=cert_label(cert))

    try:
        cert.verify_directly_issued_by(parent)
    except InvalidSignature:
        raise VerificationError(f"Signature of {cert_label(cert)} does not verify against {cert_label(parent)}",
                                subject=cert_label(cert))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise VerificationError(f"{cert_label(cert)} is not issued by {cert_label(parent)}: {e}",
                                subject=cert_label(cert))


def walk_chain(certs: Chain, inspect: Optional[Callable[[x509.Certificate], None]] = None) -> None:
    """Validate every adjacent pair of the chain, stopping at the first broken link.

    ``inspect`` is called on each certificate before its link to the parent is
    checked, and on the last certificate of the chain once the walk is done.
    A single certificate has no links and is accepted as is.
    """
    if not certs:
        raise VerificationError("no certificates found")

    for cert, parent in zip(certs, certs[1:]):
        if inspect is not None:
            inspect(cert)
        check_link(cert, parent)

    if inspect is not None:
        inspect(certs[-1])
    logger.debug(f"Walked chain of {len(certs)} certificate(s)")


def validate_chain(certs: Chain, hostname: str, grade: Optional[Grade] = None) -> None:
    """Hostname check on the leaf followed by the full linkage walk.

    ``grade`` is attached to any VerificationError raised.
    """
    try:
        if not certs:
            raise VerificationError("no certificates found")
        verify_hostname(certs[0], hostname)
        walk_chain(certs)
    except VerificationError as e:
        if grade is not None:
            e.grade = grade
        raise


def weak_signatures(certs: Chain) -> List[str]:
    """Walk the chain and list every certificate signed with a SHA-1 based algorithm.

    Broken links still raise VerificationError; weak algorithms never do.
    """
    findings: List[str] = []

    def inspect(cert: x509.Certificate) -> None:
        algorithm = SHA1_SIGNATURE_ALGORITHMS.get(cert.signature_algorithm_oid)
        if algorithm is not None:
            findings.append(f"{cert_label(cert)} is signed by {algorithm}")
            logger.debug(f"Weak signature {get_signature_algorithm(cert)} on {cert_label(cert)}")

    walk_chain(certs, inspect)
    return findings


def expiry_time(certs: Chain) -> Optional[datetime.datetime]:
    """Earliest not-after time across the chain, or None for an empty chain."""
    if not certs:
        return None
    return min(cert.not_valid_after_utc for cert in certs)
