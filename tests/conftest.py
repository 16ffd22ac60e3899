"""
Shared pytest fixtures for Carina tests.

This module provides common fixtures including:
- A throwaway PKI (CA, client and server certificates) built with cryptography
- Credentials bundle builders for directories and ZIP archives
- FakeCarinaAPI: an httpx.MockTransport backed stand-in for the Carina and identity APIs
"""

import datetime
import io
import ipaddress
import json
import os
import sys
import zipfile
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from carina.modules.client import ClusterClient  # noqa: E402


# =============================================================================
# PKI
# =============================================================================

def _key_pem(key) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _build_cert(common_name, public_key, issuer_name, issuer_key, is_ca, issuer_public_key, ip=None):
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
        .issuer_name(issuer_name)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public_key), critical=False
        )
    )
    if is_ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    if ip is not None:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.IPAddress(ipaddress.ip_address(ip))]),
            critical=False,
        )
    return builder.sign(issuer_key, hashes.SHA256())


@dataclass
class PKIMaterial:
    """PEM material for a CA plus client and server certificates it signed."""
    ca_pem: bytes
    client_cert_pem: bytes
    client_key_pem: bytes
    other_key_pem: bytes
    server_cert_pem: bytes
    server_key_pem: bytes


@pytest.fixture(scope="session")
def pki() -> PKIMaterial:
    """Generate a CA, a client key pair and a server key pair for 127.0.0.1."""
    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "carina-test-ca")])
    ca_cert = _build_cert("carina-test-ca", ca_key.public_key(), ca_name, ca_key, True, ca_key.public_key())

    client_key = ec.generate_private_key(ec.SECP256R1())
    client_cert = _build_cert("client", client_key.public_key(), ca_name, ca_key, False, ca_key.public_key())

    server_key = ec.generate_private_key(ec.SECP256R1())
    server_cert = _build_cert(
        "127.0.0.1", server_key.public_key(), ca_name, ca_key, False, ca_key.public_key(), ip="127.0.0.1"
    )

    return PKIMaterial(
        ca_pem=ca_cert.public_bytes(serialization.Encoding.PEM),
        client_cert_pem=client_cert.public_bytes(serialization.Encoding.PEM),
        client_key_pem=_key_pem(client_key),
        other_key_pem=_key_pem(ec.generate_private_key(ec.SECP256R1())),
        server_cert_pem=server_cert.public_bytes(serialization.Encoding.PEM),
        server_key_pem=_key_pem(server_key),
    )


# =============================================================================
# Credentials bundles
# =============================================================================

DOCKER_ENV = b"""# Docker environment for a Carina cluster
export DOCKER_HOST=tcp://10.0.0.5:2376
export DOCKER_TLS_VERIFY=1
export DOCKER_CERT_PATH=$(pwd)
"""

KUBECTL_CONFIG = b"""apiVersion: v1
clusters:
- cluster:
    certificate-authority: ca.pem
    server: https://10.0.0.9
  name: mycluster
kind: Config
"""


@pytest.fixture
def bundle_files(pki) -> Dict[str, bytes]:
    """Files of a typical Swarm credentials bundle."""
    return {
        "ca.pem": pki.ca_pem,
        "cert.pem": pki.client_cert_pem,
        "key.pem": pki.client_key_pem,
        "docker.env": DOCKER_ENV,
        "README.md": b"# Carina credentials\n",
    }


def make_zip(files: Dict[str, bytes], prefix: Optional[str] = None) -> bytes:
    """Build a credentials archive, optionally nested under a directory entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        if prefix:
            archive.writestr(prefix.rstrip("/") + "/", b"")
        for name, contents in files.items():
            archive.writestr(f"{prefix.rstrip('/')}/{name}" if prefix else name, contents)
    return buffer.getvalue()


@pytest.fixture
def write_bundle(tmp_path) -> Callable[[Dict[str, bytes]], str]:
    """Write files into a fresh directory and return its path."""
    def _write(files: Dict[str, bytes]) -> str:
        directory = tmp_path / "bundle"
        directory.mkdir(exist_ok=True)
        for name, contents in files.items():
            (directory / name).write_bytes(contents)
        return str(directory)
    return _write


# =============================================================================
# Fake Carina API
# =============================================================================

ENDPOINT = "https://api.carina.test"
IDENTITY_ENDPOINT = "https://identity.test/v2.0"
TOKEN = "test-token-123"


def identity_payload(endpoint: str = ENDPOINT) -> Dict[str, Any]:
    return {
        "access": {
            "token": {
                "id": TOKEN,
                "expires": "2030-01-01T00:00:00Z",
                "tenant": {"id": "123456", "name": "123456"},
            },
            "serviceCatalog": [
                {"name": "cloudFiles", "type": "object-store",
                 "endpoints": [{"publicURL": "https://files.test/v1", "region": "IAD"}]},
                {"name": "cloudContainers", "type": "rax:container",
                 "endpoints": [
                     {"publicURL": "https://ord.carina.test/", "region": "ORD"},
                     {"publicURL": endpoint + "/", "region": "IAD"},
                 ]},
            ],
        }
    }


@dataclass
class FakeCarinaAPI:
    """
    Route table served through httpx.MockTransport.

    Usage:
        def test_list(api):
            api.add("GET", "/clusters", json={"clusters": []})
            assert api.client().list_clusters() == []
    """
    routes: Dict[Tuple[str, str], Tuple[int, Dict[str, Any]]] = field(default_factory=dict)
    requests: List[httpx.Request] = field(default_factory=list)

    def add(self, method: str, url: str, status_code: int = 200, **kwargs) -> "FakeCarinaAPI":
        if url.startswith("/"):
            url = ENDPOINT + url
        self.routes[(method, url)] = (status_code, kwargs)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        key = (request.method, url)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"No route for {request.method} {url}"})
        status_code, kwargs = self.routes[key]
        return httpx.Response(status_code, **kwargs)

    def http_client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def client(self) -> ClusterClient:
        return ClusterClient(ENDPOINT, TOKEN, username="alice", http_client=self.http_client())

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def api() -> FakeCarinaAPI:
    """Empty fake API; add routes per test."""
    return FakeCarinaAPI()


CLUSTER_TYPE = {
    "id": 1,
    "name": "Kubernetes 1.4.5 on LXC",
    "active": True,
    "coe": "kubernetes",
    "host_type": "lxc",
}


def cluster_payload(**overrides) -> Dict[str, Any]:
    payload = {
        "id": "c0ffee",
        "name": "mycluster",
        "cluster_type": CLUSTER_TYPE,
        "node_count": 1,
        "status": "active",
    }
    payload.update(overrides)
    return payload
