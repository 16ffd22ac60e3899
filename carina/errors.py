"""Exception hierarchy shared by all Carina modules."""

from typing import Optional


class CarinaError(Exception):
    """Base class for every error raised by this package."""


class CredentialsError(CarinaError):
    """A credentials bundle could not be loaded or used."""


class BundleUnreadable(CredentialsError):
    """The bundle directory could not be listed or one of its files read."""


class ArchiveInvalid(CredentialsError):
    """The credentials ZIP archive is malformed or an entry failed to decompress."""


class MissingEndpointSource(CredentialsError):
    """Neither docker.env nor kubectl.config is present in the bundle."""


class EndpointTokenNotFound(CredentialsError):
    """The endpoint file exists but no line declares the endpoint."""


class EndpointURLInvalid(CredentialsError):
    """The declared endpoint is not a usable URL or has no derivable port."""


class KeyPairMismatch(CredentialsError):
    """cert.pem and key.pem do not load as a matching key pair."""


class CAUnparseable(CredentialsError):
    """ca.pem contains no parseable certificate (raised only in strict mode)."""


class ConnectFailed(CredentialsError):
    """The TLS dial or handshake to the cluster endpoint failed."""

    def __init__(self, message: str, host: str):
        super().__init__(message)
        self.host = host


class AuthenticationError(CarinaError):
    """Exchanging credentials for an identity token failed."""


class CarinaAPIError(CarinaError):
    """The Carina API returned an error status or an unexpected payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
