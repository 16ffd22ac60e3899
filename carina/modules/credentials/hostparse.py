"""
COE endpoint extraction from credentials bundle text files.

docker.env declares the Swarm endpoint as ``DOCKER_HOST=tcp://ip:port`` and
kubectl.config declares the Kubernetes API server as ``server: https://ip``.
"""

import logging
from typing import Mapping, Optional
from urllib.parse import urlsplit

from carina.errors import EndpointTokenNotFound, EndpointURLInvalid, MissingEndpointSource

logger = logging.getLogger(__name__)

DOCKER_ENV = "docker.env"
KUBECTL_CONFIG = "kubectl.config"

DOCKER_HOST_TOKEN = "DOCKER_HOST="
KUBECTL_SERVER_TOKEN = "server:"

HTTPS_DEFAULT_PORT = 443

# (file name, token, human readable field) in lookup order
ENDPOINT_SOURCES = (
    (DOCKER_ENV, DOCKER_HOST_TOKEN, "DOCKER_HOST"),
    (KUBECTL_CONFIG, KUBECTL_SERVER_TOKEN, "server"),
)


def find_token_value(config: bytes, token: str) -> Optional[str]:
    """
    Return the text following ``token`` on the first line that declares it.

    A line only counts when splitting it on the token yields exactly two
    segments and the trailing segment is not blank. Lines that repeat the
    token, or carry nothing after it, are skipped.

    Args:
        config: Raw file contents
        token: Literal, case-sensitive marker to look for

    Returns:
        The trimmed value, or None when no line matches
    """
    text = config.decode("utf-8", errors="replace")
    for line in text.split("\n"):
        segments = line.split(token)
        if len(segments) != 2:
            continue
        value = segments[1].strip()
        if value:
            return value
    return None


def normalize_endpoint(candidate: str) -> str:
    """
    Turn an endpoint URL into the ``host:port`` pair the TLS dialer needs.

    HTTPS endpoints without a port get 443. Any other scheme must carry an
    explicit port.

    Raises:
        EndpointURLInvalid: If the URL cannot be parsed or has no usable port
    """
    try:
        url = urlsplit(candidate)
        port = url.port
    except ValueError as e:
        raise EndpointURLInvalid(
            f"Invalid credentials bundle. Bad host URL {candidate}"
        ) from e

    # An empty port ("host:") is neither explicit nor absent
    if not url.hostname or url.netloc.endswith(":"):
        raise EndpointURLInvalid(
            f"Invalid credentials bundle. Could not determine the host port from {candidate}"
        )

    # Userinfo is dropped; IPv6 literals keep their brackets
    host = f"[{url.hostname}]" if ":" in url.hostname else url.hostname

    if port is not None:
        return f"{host}:{port}"

    if url.scheme == "https":
        return f"{host}:{HTTPS_DEFAULT_PORT}"

    raise EndpointURLInvalid(
        f"Invalid credentials bundle. Could not determine the host port from {candidate}"
    )


def parse_host(files: Mapping[str, bytes]) -> str:
    """
    Find the COE endpoint, e.g. the swarm or kubernetes ip and port.

    docker.env takes priority over kubectl.config when both are present.

    Raises:
        MissingEndpointSource: Neither recognized file is present
        EndpointTokenNotFound: The file is present but declares no endpoint
        EndpointURLInvalid: The declared endpoint is unusable
    """
    for file_name, token, field in ENDPOINT_SOURCES:
        if file_name not in files:
            continue

        candidate = find_token_value(files[file_name], token)
        if candidate is None:
            raise EndpointTokenNotFound(
                f"Invalid credentials bundle. Could not parse {field} from {file_name}."
            )

        logger.debug(f"Found endpoint {candidate} in {file_name}")
        return normalize_endpoint(candidate)

    raise MissingEndpointSource(
        f"Invalid credentials bundle. Missing both {DOCKER_ENV} and {KUBECTL_CONFIG}."
    )
