# Certificate field helpers

import ipaddress
import logging
from typing import List, Optional, Union

from cryptography import x509
from cryptography.x509.oid import ExtensionOID, NameOID

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def get_common_name(subject: x509.Name) -> Optional[str]:
    """Extracts the Common Name (CN) from a certificate subject."""
    cn_list = subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(cn_list[0].value) if cn_list else None


def cert_label(cert: x509.Certificate) -> str:
    """Name used for a certificate in messages: its CN, or the full subject when it has none."""
    return get_common_name(cert.subject) or cert.subject.rfc4514_string()


def _san(cert: x509.Certificate) -> Optional[x509.SubjectAlternativeName]:
    try:
        return cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME).value
    except x509.ExtensionNotFound:
        return None


def has_san(cert: x509.Certificate) -> bool:
    return _san(cert) is not None


def extract_san(cert: x509.Certificate) -> List[str]:
    """Extract the DNS Subject Alternative Names of a certificate."""
    san = _san(cert)
    return san.get_values_for_type(x509.DNSName) if san is not None else []


def extract_ip_san(cert: x509.Certificate) -> List[IPAddress]:
    """Extract the IP address Subject Alternative Names of a certificate."""
    san = _san(cert)
    return san.get_values_for_type(x509.IPAddress) if san is not None else []


def is_ca(cert: x509.Certificate) -> bool:
    """True when the certificate carries BasicConstraints with CA set."""
    try:
        return cert.extensions.get_extension_for_oid(ExtensionOID.BASIC_CONSTRAINTS).value.ca
    except x509.ExtensionNotFound:
        return False


def subject_key_id(cert: x509.Certificate) -> bytes:
    """SubjectKeyIdentifier digest, empty when the extension is absent."""
    try:
        return cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_KEY_IDENTIFIER).value.digest
    except x509.ExtensionNotFound:
        return b""


def authority_key_id(cert: x509.Certificate) -> bytes:
    """AuthorityKeyIdentifier key identifier, empty when absent."""
    try:
        aki = cert.extensions.get_extension_for_oid(ExtensionOID.AUTHORITY_KEY_IDENTIFIER).value
    except x509.ExtensionNotFound:
        return b""
    return aki.key_identifier or b""


def get_signature_algorithm(cert: x509.Certificate) -> str:
    """Name of the signature algorithm OID, falling back to its dotted string."""
    oid = cert.signature_algorithm_oid
    name = getattr(oid, "_name", None)
    if not name or name == "Unknown OID":
        return oid.dotted_string
    return name
