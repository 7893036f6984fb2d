# src/cert_scan/connection.py

"""
Secure connection provider used by the PKI scanners.

The TLS handshake deliberately skips certificate verification: the scanners
check the chain themselves and need it even when it is broken.
"""

import http.client
import logging
import socket
import ssl
import urllib.error
import urllib.request
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtensionOID

from cert_scan.chain import split_host_port
from cert_scan.errors import ConnectionFailed, ScanError

logger = logging.getLogger(__name__)

# --- Configuration ---
DEFAULT_TIMEOUT = 10  # Timeout for dialing and handshaking, in seconds
DEFAULT_PORT = 443
AIA_TIMEOUT = 10  # Timeout for downloading intermediates from AIA URLs
USER_AGENT = "Python-CertScan/1.0"

NETWORK_FAMILIES = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}

AIA_CONTENT_TYPES = ['application/pkix-cert', 'application/x-x509-ca-cert', 'application/octet-stream', 'application/pkcs7-mime']


def load_certificate(data: bytes) -> x509.Certificate:
    """Load a certificate from PEM or DER bytes."""
    if b"-----BEGIN CERTIFICATE-----" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def fetch_intermediate_certificates(cert: x509.Certificate, timeout: float = AIA_TIMEOUT) -> List[x509.Certificate]:
    """
    Fetch the issuer certificate referenced by the Authority Information Access (AIA) extension.

    CA Issuers URLs are alternatives for the same issuer (e.g. a cross-sign),
    so the first certificate that parses is returned and the rest are not
    fetched. Download and parse failures are logged and skipped: a chain that
    cannot be completed is left for the chain checks to reject.
    """
    try:
        aia = cert.extensions.get_extension_for_oid(ExtensionOID.AUTHORITY_INFORMATION_ACCESS).value
    except x509.ExtensionNotFound:
        logger.info("No AIA extension found in the certificate to fetch intermediates.")
        return []

    ca_issuer_urls = [desc.access_location.value
                      for desc in aia
                      if desc.access_method == AuthorityInformationAccessOID.CA_ISSUERS and isinstance(desc.access_location, x509.UniformResourceIdentifier)]

    fetched_urls = set()
    for url in ca_issuer_urls:
        if url in fetched_urls or not url.lower().startswith(("http://", "https://")):
            continue
        fetched_urls.add(url)
        logger.info(f"Fetching intermediate certificate from AIA URL: {url}")
        try:
            req = urllib.request.Request(url, headers={'User-Agent': USER_AGENT})
            with urllib.request.urlopen(req, timeout=timeout) as response:
                content_type = response.info().get_content_type().lower()
                if not any(allowed in content_type for allowed in AIA_CONTENT_TYPES):
                    logger.warning(f"Unexpected content type '{content_type}' for intermediate certificate at {url}")
                    continue
                data = response.read()
        except urllib.error.URLError as e:
            logger.warning(f"Failed to fetch intermediate certificate from {url}: {e}")
            continue
        except TimeoutError:
            logger.warning(f"Timeout fetching intermediate certificate from {url}")
            continue
        except (http.client.HTTPException, OSError, ValueError) as e:
            logger.warning(f"Unexpected error fetching intermediate certificate from {url}: {e!r}")
            continue

        try:
            intermediate = load_certificate(data)
        except ValueError as e:
            logger.warning(f"Could not parse certificate data from {url}: {e}")
            continue
        logger.debug(f"Successfully loaded intermediate from {url}")
        return [intermediate]
    return []


class TLSConnection:
    """An established TLS connection to a scanned host. Use as a context manager."""

    def __init__(self, ssock: ssl.SSLSocket, host: str, port: int):
        self._ssock = ssock
        self.host = host
        self.port = port

    def __enter__(self) -> "TLSConnection":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._ssock.close()

    def peer_chain_der(self) -> List[bytes]:
        """DER encoded peer chain, leaf first.

        Interpreters without SSLSocket.get_unverified_chain only expose the leaf.
        """
        get_chain = getattr(self._ssock, "get_unverified_chain", None)
        if get_chain is not None:
            chain = get_chain()
            if chain:
                return [bytes(der) for der in chain]
        der_cert = self._ssock.getpeercert(binary_form=True)
        return [der_cert] if der_cert else []

    def peer_certificates(self) -> List[x509.Certificate]:
        try:
            return [x509.load_der_x509_certificate(der) for der in self.peer_chain_der()]
        except ValueError as e:
            raise ScanError(f"Could not parse certificate presented by {self.host}:{self.port}: {e}")


class Dialer:
    """Opens TLS connections to ``host:port`` endpoints."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, network: str = "tcp",
                 default_port: int = DEFAULT_PORT, fetch_intermediates: bool = True):
        if network not in NETWORK_FAMILIES:
            raise ValueError(f"unknown network {network!r}, expected one of {', '.join(NETWORK_FAMILIES)}")
        self.timeout = timeout
        self.network = network
        self.default_port = default_port
        self.fetch_intermediates = fetch_intermediates

    def __repr__(self) -> str:
        return f"Dialer(timeout={self.timeout}, network={self.network!r}, default_port={self.default_port})"

    def tls_context(self) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        try:
            context.minimum_version = ssl.TLSVersion.TLSv1_2
        except (AttributeError, ValueError):
            logger.warning("Could not set minimum TLS version on context (might be older Python/SSL version).")
        return context

    def resolve(self, host: str) -> Tuple[str, int]:
        """Split an endpoint into hostname and port, using the default port when none is given."""
        try:
            hostname, port = split_host_port(host)
            port_number = int(port) if port is not None else self.default_port
        except ValueError as e:
            raise ConnectionFailed(f"Invalid endpoint {host}: {e}", host=host)
        if not hostname or not (1 <= port_number <= 65535):
            raise ConnectionFailed(f"Invalid endpoint {host}", host=hostname, port=port_number)
        return hostname, port_number

    def _connect(self, hostname: str, port: int) -> socket.socket:
        family = NETWORK_FAMILIES[self.network]
        last_error: Optional[OSError] = None
        for af, socktype, proto, _, address in socket.getaddrinfo(hostname, port, family, socket.SOCK_STREAM):
            sock = socket.socket(af, socktype, proto)
            sock.settimeout(self.timeout)
            try:
                sock.connect(address)
                return sock
            except OSError as e:
                last_error = e
                sock.close()
        if last_error is not None:
            raise last_error
        raise OSError(f"no addresses found for {hostname}")

    def dial(self, host: str) -> TLSConnection:
        """Connect and complete a TLS handshake, raising ConnectionFailed on any failure."""
        hostname, port = self.resolve(host)
        logger.debug(f"Connecting to {hostname}:{port} over {self.network}...")
        sock = None
        try:
            sock = self._connect(hostname, port)
            ssock = self.tls_context().wrap_socket(sock, server_hostname=hostname)
        except socket.timeout:
            error_msg = f"Connection to {hostname}:{port} timed out."
        except socket.gaierror as e:
            error_msg = f"Could not resolve {hostname}: {e}"
        except ConnectionRefusedError:
            error_msg = f"Connection to {hostname}:{port} refused."
        except ssl.SSLError as e:
            error_msg = f"An SSL error occurred connecting to {hostname}:{port}: {e}"
        except OSError as e:
            error_msg = f"Network error connecting to {hostname}:{port}: {e}"
        else:
            logger.info(f"Connected to {hostname}:{port} using {ssock.version()}")
            return TLSConnection(ssock, hostname, port)

        if sock is not None:
            sock.close()
        logger.debug(error_msg)
        raise ConnectionFailed(error_msg, host=hostname, port=port)

    def fetch_chain(self, host: str) -> List[x509.Certificate]:
        """Return the peer certificate chain of ``host``, leaf first.

        The connection is closed as soon as the chain has been read. When the
        peer chain only holds the leaf, intermediates are completed from AIA
        unless disabled.
        """
        with self.dial(host) as conn:
            certs = conn.peer_certificates()
        logger.info(f"Received {len(certs)} certificate(s) from {conn.host}:{conn.port}")

        if len(certs) == 1 and self.fetch_intermediates:
            certs.extend(fetch_intermediate_certificates(certs[0], timeout=self.timeout))
        return certs
