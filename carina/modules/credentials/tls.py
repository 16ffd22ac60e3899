"""
Mutual TLS configuration assembled from a credentials bundle.

Cluster certificates are issued for bare IPs and signed by the CA shipped in
the bundle, so the context skips hostname checks and never loads the system
trust store. Only the bundle CA is trusted.
"""

import logging
import os
import ssl
import tempfile
from dataclasses import dataclass
from typing import Tuple

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from carina.errors import CAUnparseable, KeyPairMismatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TLSConfig:
    """TLS client configuration for dialing a cluster's COE endpoint."""

    context: ssl.SSLContext
    ca_certificates: Tuple[x509.Certificate, ...]
    client_certificate: x509.Certificate

    @property
    def trusts_bundle_ca(self) -> bool:
        """False when ca.pem yielded no certificates and nothing is trusted."""
        return len(self.ca_certificates) > 0


def load_ca_certificates(ca_pem: bytes) -> Tuple[x509.Certificate, ...]:
    """Parse every PEM certificate in ``ca_pem``, returning none if it is not PEM."""
    if not ca_pem:
        return ()
    try:
        return tuple(x509.load_pem_x509_certificates(ca_pem))
    except ValueError:
        return ()


def load_key_pair(cert_pem: bytes, key_pem: bytes) -> x509.Certificate:
    """
    Load the client certificate and make sure ``key_pem`` is its private key.

    Raises:
        KeyPairMismatch: Either half is missing or malformed, or they do not match
    """
    try:
        certificate = x509.load_pem_x509_certificate(cert_pem)
        private_key = serialization.load_pem_private_key(key_pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyPairMismatch(f"Invalid credentials bundle. Keypair mis-match. {e}") from e

    cert_public = certificate.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    key_public = private_key.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    if cert_public != key_public:
        raise KeyPairMismatch(
            "Invalid credentials bundle. Keypair mis-match. "
            "key.pem is not the private key for cert.pem"
        )
    return certificate


def _load_cert_chain(context: ssl.SSLContext, cert_pem: bytes, key_pem: bytes) -> None:
    # ssl only loads certificate chains from disk
    with tempfile.TemporaryDirectory(prefix="carina-tls-") as workdir:
        cert_path = os.path.join(workdir, "cert.pem")
        key_path = os.path.join(workdir, "key.pem")
        for path, contents in ((cert_path, cert_pem), (key_path, key_pem)):
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(contents)
        try:
            context.load_cert_chain(certfile=cert_path, keyfile=key_path)
        except ssl.SSLError as e:
            raise KeyPairMismatch(f"Invalid credentials bundle. Keypair mis-match. {e}") from e


def build_tls_config(
    ca_pem: bytes, cert_pem: bytes, key_pem: bytes, strict_ca: bool = False
) -> TLSConfig:
    """
    Put together the TLS configuration needed to connect to the COE endpoint.

    A ca.pem without any parseable certificate leaves the trust pool empty,
    so every handshake will fail verification. That condition is reported
    through ``TLSConfig.trusts_bundle_ca`` and a warning, or raised as
    ``CAUnparseable`` when ``strict_ca`` is set.

    Args:
        ca_pem: Certificate authority chain
        cert_pem: Client certificate
        key_pem: Client private key
        strict_ca: Raise instead of warning when ca.pem has no certificates

    Returns:
        Frozen TLSConfig wrapping a client SSLContext

    Raises:
        KeyPairMismatch: cert.pem and key.pem do not form a valid pair
        CAUnparseable: strict_ca is set and ca.pem has no certificates
    """
    client_certificate = load_key_pair(cert_pem, key_pem)

    ca_certificates = load_ca_certificates(ca_pem)
    if not ca_certificates:
        if strict_ca:
            raise CAUnparseable("Invalid credentials bundle. ca.pem contains no certificates.")
        logger.warning("ca.pem contains no certificates; the cluster endpoint will not be trusted")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_REQUIRED
    if ca_certificates:
        cadata = "".join(
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for cert in ca_certificates
        )
        context.load_verify_locations(cadata=cadata)

    _load_cert_chain(context, cert_pem, key_pem)

    return TLSConfig(
        context=context,
        ca_certificates=ca_certificates,
        client_certificate=client_certificate,
    )
