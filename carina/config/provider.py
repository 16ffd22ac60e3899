"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, replace
from typing import Optional, Protocol

DEFAULT_IDENTITY_ENDPOINT = "https://identity.api.rackspacecloud.com/v2.0"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class ClientConfig:
    """Carina API client configuration."""
    username: Optional[str]
    api_key: Optional[str]
    endpoint: Optional[str]
    identity_endpoint: str
    region: Optional[str]
    timeout: float
    log_level: str

    @property
    def has_credentials(self) -> bool:
        """Check if both username and API key are set."""
        return bool(self.username) and bool(self.api_key)

    def override(self, **values) -> "ClientConfig":
        """Return a copy with every non-None value replaced."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_client_config(self) -> ClientConfig:
        """Get client configuration."""
        ...


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_client_config(self) -> ClientConfig:
        """Get client configuration from environment variables."""
        timeout = os.getenv("CARINA_TIMEOUT", str(DEFAULT_TIMEOUT))
        try:
            timeout_seconds = float(timeout)
        except ValueError:
            raise ValueError(f"CARINA_TIMEOUT must be a number of seconds, got {timeout!r}") from None

        return ClientConfig(
            username=_first_env("CARINA_USERNAME", "RACKSPACE_USERNAME"),
            api_key=_first_env("CARINA_APIKEY", "RACKSPACE_APIKEY"),
            endpoint=os.getenv("CARINA_ENDPOINT") or None,
            identity_endpoint=os.getenv("CARINA_IDENTITY_ENDPOINT", DEFAULT_IDENTITY_ENDPOINT),
            region=_first_env("CARINA_REGION", "RACKSPACE_REGION"),
            timeout=timeout_seconds,
            log_level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        )
