"""
Credentials bundle: the certificates and environment scripts for one cluster.

A bundle is loaded either from a local directory or from the ZIP archive the
Carina API serves. Loaders raise on failure, so a CredentialsBundle instance
always holds fully read files.
"""

import io
import logging
import os
import posixpath
import socket
import zipfile
import zlib
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union

from carina.errors import ArchiveInvalid, BundleUnreadable, ConnectFailed

from .hostparse import parse_host
from .tls import TLSConfig, build_tls_config

logger = logging.getLogger(__name__)

VERIFY_CREDENTIALS_TIMEOUT = 2.0

CA_FILE = "ca.pem"
CERT_FILE = "cert.pem"
KEY_FILE = "key.pem"

CLUSTER_NAME_VARIABLE = "CARINA_CLUSTER_NAME"

# Shell dialect used by each environment script shipped in a bundle
_ENV_SCRIPT_TEMPLATES = {
    "docker.env": "export {var}={value}",
    "kubectl.env": "export {var}={value}",
    "docker.fish": "set -x {var} {value}",
    "kubectl.fish": "set -x {var} {value}",
    "docker.ps1": '$env:{var}="{value}"',
    "kubectl.ps1": '$env:{var}="{value}"',
    "docker.cmd": "set {var}={value}",
    "kubectl.cmd": "set {var}={value}",
}


def split_host_port(host: str) -> tuple:
    """Split ``host:port`` (IPv6 hosts in brackets) into a dialable pair."""
    hostname, _, port = host.rpartition(":")
    return hostname.strip("[]"), int(port)


class CredentialsBundle:
    """Set of certificates and environment information needed to connect to a cluster."""

    def __init__(self, files: Optional[Mapping[str, bytes]] = None):
        self._files: Dict[str, bytes] = dict(files or {})

    def __repr__(self) -> str:
        return f"CredentialsBundle(files={sorted(self._files)})"

    def __contains__(self, name: object) -> bool:
        return name in self._files

    @property
    def files(self) -> Mapping[str, bytes]:
        """Read-only view of file name to contents."""
        return MappingProxyType(self._files)

    @classmethod
    def from_directory(cls, credentials_path: Union[str, os.PathLike]) -> "CredentialsBundle":
        """
        Load a credentials bundle from the filesystem.

        Every regular file in the directory is read in full; sub-directories
        are skipped. Contents are not validated here.

        Raises:
            BundleUnreadable: The directory cannot be listed or a file cannot be read
        """
        credentials_path = os.fspath(credentials_path)
        try:
            entries = sorted(os.scandir(credentials_path), key=lambda entry: entry.name)
        except OSError as e:
            raise BundleUnreadable(
                f"Invalid credentials bundle. Cannot list files in {credentials_path}"
            ) from e

        files: Dict[str, bytes] = {}
        for entry in entries:
            try:
                if not entry.is_file():
                    continue
                with open(entry.path, "rb") as f:
                    files[entry.name] = f.read()
            except OSError as e:
                raise BundleUnreadable(
                    f"Invalid credentials bundle. Cannot read {entry.path}"
                ) from e

        logger.debug(f"Loaded {len(files)} credential files from {credentials_path}")
        return cls(files)

    @classmethod
    def from_zip(cls, data: Union[bytes, io.IOBase]) -> "CredentialsBundle":
        """
        Load a credentials bundle from a ZIP archive.

        Older bundles nest their files under a UUID directory. Directory
        entries are skipped and every file is keyed by its base name.

        Raises:
            ArchiveInvalid: The archive is malformed or an entry fails to decompress
        """
        stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        try:
            archive = zipfile.ZipFile(stream)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
            raise ArchiveInvalid(f"Invalid credentials archive. {e}") from e

        files: Dict[str, bytes] = {}
        with archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                name = posixpath.basename(info.filename)
                try:
                    files[name] = archive.read(info)
                except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError, OSError) as e:
                    raise ArchiveInvalid(
                        f"Invalid credentials archive. Cannot extract {info.filename}: {e}"
                    ) from e

        logger.debug(f"Extracted {len(files)} credential files from archive")
        return cls(files)

    @property
    def ca(self) -> bytes:
        """Contents of ca.pem."""
        return self._files.get(CA_FILE, b"")

    @property
    def cert(self) -> bytes:
        """Contents of cert.pem."""
        return self._files.get(CERT_FILE, b"")

    @property
    def key(self) -> bytes:
        """Contents of key.pem."""
        return self._files.get(KEY_FILE, b"")

    def parse_host(self) -> str:
        """Return the COE endpoint as ``host:port``."""
        return parse_host(self._files)

    def get_tls_config(self, strict_ca: bool = False) -> TLSConfig:
        """Return the TLS configuration for connecting to the host from ``parse_host``."""
        return build_tls_config(self.ca, self.cert, self.key, strict_ca=strict_ca)

    def verify(self, strict_ca: bool = False) -> None:
        """
        Validate that we can connect to the COE endpoint in the bundle.

        Opens a real TLS connection with a 2 second timeout and closes it
        straight away.

        Raises:
            CredentialsError: The bundle cannot produce a TLS config or host
            ConnectFailed: The dial or handshake failed
        """
        tls_config = self.get_tls_config(strict_ca=strict_ca)
        host = self.parse_host()

        try:
            hostname, port = split_host_port(host)
            with socket.create_connection((hostname, port), timeout=VERIFY_CREDENTIALS_TIMEOUT) as sock:
                with tls_config.context.wrap_socket(sock, server_hostname=hostname):
                    pass
        except (OSError, ValueError) as e:
            raise ConnectFailed(
                f"Invalid credentials bundle. Unable to connect to {host}. {e}", host=host
            ) from e

        logger.debug(f"Verified TLS connection to {host}")

    def annotate_cluster_name(self, cluster_name: str) -> None:
        """Append the cluster name to every environment script present in the bundle."""
        for file_name, template in _ENV_SCRIPT_TEMPLATES.items():
            if file_name not in self._files:
                continue
            contents = self._files[file_name]
            if contents and not contents.endswith(b"\n"):
                contents += b"\n"
            line = template.format(var=CLUSTER_NAME_VARIABLE, value=cluster_name)
            self._files[file_name] = contents + line.encode("utf-8") + b"\n"

    def write(self, path: Union[str, os.PathLike]) -> List[str]:
        """
        Write every file in the bundle to ``path`` with owner-only permissions.

        Returns:
            Paths written, sorted by file name
        """
        path = os.fspath(path)
        os.makedirs(path, exist_ok=True)

        written = []
        for file_name in sorted(self._files):
            file_path = os.path.join(path, file_name)
            fd = os.open(file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(self._files[file_name])
            os.chmod(file_path, 0o600)
            written.append(file_path)
        return written
