# tests/conftest.py

import datetime
import ipaddress

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import AuthorityInformationAccessOID, NameOID

from cert_scan.errors import ConnectionFailed

NOW = datetime.datetime.now(datetime.timezone.utc)


class CertFactory:
    """Issues test certificates with a small pool of pre-generated RSA keys."""

    def __init__(self, keys):
        self.keys = keys

    def issue(self, common_name, issuer=None, issuer_key=None, key=None, ca=False, san=None,
              not_before=None, not_after=None, hash_algorithm=None, basic_constraints=True,
              subject_key_id=None, authority_key_id=True, ca_issuers=None):
        key = key or self.keys[0]
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        issuer_name = issuer.subject if issuer is not None else name
        signing_key = issuer_key or key

        builder = (x509.CertificateBuilder()
                   .subject_name(name)
                   .issuer_name(issuer_name)
                   .public_key(key.public_key())
                   .serial_number(x509.random_serial_number())
                   .not_valid_before(not_before or NOW - datetime.timedelta(days=1))
                   .not_valid_after(not_after or NOW + datetime.timedelta(days=365)))
        if basic_constraints:
            builder = builder.add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        if subject_key_id is None:
            builder = builder.add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        else:
            builder = builder.add_extension(x509.SubjectKeyIdentifier(subject_key_id), critical=False)
        if authority_key_id:
            builder = builder.add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()), critical=False)
        if san is not None:
            entries = []
            for entry in san:
                try:
                    entries.append(x509.IPAddress(ipaddress.ip_address(entry)))
                except ValueError:
                    entries.append(x509.DNSName(entry))
            builder = builder.add_extension(x509.SubjectAlternativeName(entries), critical=False)
        if ca_issuers:
            builder = builder.add_extension(x509.AuthorityInformationAccess([
                x509.AccessDescription(AuthorityInformationAccessOID.CA_ISSUERS, x509.UniformResourceIdentifier(url))
                for url in ca_issuers
            ]), critical=False)
        return builder.sign(signing_key, hash_algorithm or hashes.SHA256())


@pytest.fixture(scope="session")
def keys():
    return [rsa.generate_private_key(public_exponent=65537, key_size=2048) for _ in range(3)]


@pytest.fixture(scope="session")
def factory(keys):
    return CertFactory(keys)


@pytest.fixture(scope="session")
def pki(factory, keys):
    """A root, an intermediate and a leaf for www.example.com, each with its own key."""
    root_key, inter_key, leaf_key = keys
    root = factory.issue("Test Root CA", key=root_key, ca=True)
    inter = factory.issue("Test Intermediate CA", issuer=root, issuer_key=root_key, key=inter_key, ca=True)
    leaf = factory.issue("www.example.com", issuer=inter, issuer_key=inter_key, key=leaf_key,
                         san=["www.example.com", "*.api.example.com", "192.0.2.10"])
    return {
        "root": root, "inter": inter, "leaf": leaf,
        "root_key": root_key, "inter_key": inter_key, "leaf_key": leaf_key,
        "chain": [leaf, inter, root],
    }


class FakeDialer:
    """Stands in for Dialer: returns a fixed chain, or raises a fixed error."""

    def __init__(self, certs=None, error=None):
        self.certs = certs or []
        self.error = error
        self.hosts = []

    def fetch_chain(self, host):
        self.hosts.append(host)
        if self.error is not None:
            raise self.error
        return list(self.certs)


@pytest.fixture
def fake_dialer():
    return FakeDialer


@pytest.fixture
def refused():
    return ConnectionFailed("Connection to unreachable.example.com:443 refused.",
                            host="unreachable.example.com", port=443)
