"""
Carina cluster API client.

Thin synchronous wrapper over the Carina REST API. Every call is a single
request; nothing is retried.
"""

import logging
from typing import Any, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from carina.config.provider import DEFAULT_IDENTITY_ENDPOINT, DEFAULT_TIMEOUT
from carina.errors import CarinaAPIError, CarinaError
from carina.modules.api.models import (
    CARINA_ENDPOINT_TYPE,
    SUPPORTED_API_VERSION,
    APIMetadata,
    Cluster,
    ClusterType,
    CreateClusterOpts,
    ErrorResponse,
    Quotas,
    ResizeTaskOpts,
)
from carina.modules.auth.identity import USER_AGENT, authenticate
from carina.modules.credentials.bundle import CredentialsBundle

logger = logging.getLogger(__name__)

MIMETYPE_JSON = "application/json"
AUTH_HEADER_KEY = "X-Auth-Token"
API_VERSION_HEADER_KEY = "API-Version"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_message(response: httpx.Response) -> str:
    """Pull the server's error text out of a failed response."""
    try:
        text = ErrorResponse.model_validate(response.json()).text
    except (ValueError, ValidationError):
        text = None
    return text or response.text or response.reason_phrase


class ClusterClient:
    """Accesses the Carina API on behalf of one authenticated user."""

    def __init__(
        self,
        endpoint: str,
        token: str,
        username: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the client.

        Args:
            endpoint: Carina API base URL
            token: Identity token sent as X-Auth-Token
            username: User the token belongs to, for display only
            timeout: Request timeout in seconds
            http_client: Optional preconfigured httpx client; closed with this client
        """
        self.endpoint = endpoint.rstrip("/")
        self.token = token
        self.username = username
        self._client = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def login(
        cls,
        username: str,
        api_key: str,
        endpoint: Optional[str] = None,
        identity_endpoint: str = DEFAULT_IDENTITY_ENDPOINT,
        region: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
    ) -> "ClusterClient":
        """
        Authenticate with an API key and create a client.

        When ``endpoint`` is omitted it is looked up in the service catalog.

        Raises:
            AuthenticationError: The token exchange failed
            CarinaError: No endpoint was given and none is cataloged
        """
        client = http_client or httpx.Client(timeout=timeout)
        try:
            identity = authenticate(
                username, api_key, identity_endpoint, http_client=client, timeout=timeout
            )
            if endpoint is None:
                endpoint = identity.endpoint_for(CARINA_ENDPOINT_TYPE, region=region)
                if endpoint is None:
                    raise CarinaError(
                        f"No {CARINA_ENDPOINT_TYPE} endpoint found in the service catalog"
                        + (f" for region {region}" if region else "")
                    )
                logger.debug(f"Discovered Carina endpoint {endpoint}")
        except CarinaError:
            if http_client is None:
                client.close()
            raise

        return cls(endpoint, identity.id, username=username, timeout=timeout, http_client=client)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._client.close()

    def __enter__(self) -> "ClusterClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict:
        return {
            "User-Agent": USER_AGENT,
            "Content-Type": MIMETYPE_JSON,
            "Accept": MIMETYPE_JSON,
            AUTH_HEADER_KEY: self.token,
            API_VERSION_HEADER_KEY: f"{CARINA_ENDPOINT_TYPE} {SUPPORTED_API_VERSION}",
        }

    def request(self, method: str, path: str, body: Any = None) -> httpx.Response:
        """
        Send an authenticated request to the API.

        Raises:
            CarinaAPIError: Transport failure or a status code of 400 or above
        """
        url = self.endpoint + path
        logger.debug(f"{method} {url}")
        try:
            response = self._client.request(method, url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            raise CarinaAPIError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400:
            raise CarinaAPIError(
                f"{method} {path} returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        return response

    def _decode(self, response: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise CarinaAPIError(
                f"Unexpected response from {response.request.url}: {e}",
                status_code=response.status_code,
            ) from e

    def _decode_list(self, response: httpx.Response, model: Type[ModelT], key: str) -> List[ModelT]:
        # List endpoints wrap their items, e.g. {"clusters": [...]}
        try:
            payload = response.json()
            items = payload[key] if isinstance(payload, dict) else payload
            return TypeAdapter(List[model]).validate_python(items)
        except (ValueError, KeyError, ValidationError) as e:
            raise CarinaAPIError(
                f"Unexpected response from {response.request.url}: {e}",
                status_code=response.status_code,
            ) from e

    def get_api_metadata(self) -> APIMetadata:
        """Get the versions served by the API."""
        return self._decode(self.request("GET", "/"), APIMetadata)

    def list_cluster_types(self) -> List[ClusterType]:
        """List the available cluster types."""
        return self._decode_list(self.request("GET", "/cluster_types"), ClusterType, "cluster_types")

    def list_clusters(self) -> List[Cluster]:
        """List the current clusters."""
        return self._decode_list(self.request("GET", "/clusters"), Cluster, "clusters")

    def get_cluster(self, cluster_id: str) -> Cluster:
        """Get a cluster by id."""
        return self._decode(self.request("GET", f"/clusters/{cluster_id}"), Cluster)

    def create_cluster(self, opts: CreateClusterOpts) -> Cluster:
        """Create a new cluster."""
        body = opts.model_dump(mode="json", exclude_none=True)
        cluster = self._decode(self.request("POST", "/clusters", body), Cluster)
        logger.info(f"Creating cluster {cluster.name} ({cluster.id})")
        return cluster

    def resize_cluster(self, cluster_id: str, nodes: int) -> Cluster:
        """Resize a cluster to the given number of nodes."""
        body = ResizeTaskOpts.for_nodes(nodes).model_dump(mode="json")
        logger.info(f"Resizing cluster {cluster_id} to {nodes} nodes")
        self.request("POST", f"/clusters/{cluster_id}/tasks", body)
        return self.get_cluster(cluster_id)

    def delete_cluster(self, cluster_id: str) -> Optional[Cluster]:
        """Delete a cluster, returning its final state when the API reports one."""
        logger.info(f"Deleting cluster {cluster_id}")
        response = self.request("DELETE", f"/clusters/{cluster_id}")
        if not response.content:
            return None
        return self._decode(response, Cluster)

    def get_quotas(self) -> Quotas:
        """Get the account's cluster quotas."""
        return self._decode(self.request("GET", "/quotas"), Quotas)

    def _download_zip(self, response: httpx.Response) -> bytes:
        content_type = response.headers.get("content-type", "")
        if not content_type.startswith(MIMETYPE_JSON):
            return response.content

        # Older API releases answer with a link to the archive
        try:
            zip_url = response.json()["zip_url"]
        except (ValueError, KeyError, TypeError) as e:
            raise CarinaAPIError(f"Unexpected credentials response: {e}") from e
        try:
            download = self._client.get(zip_url, headers={"User-Agent": USER_AGENT})
        except httpx.HTTPError as e:
            raise CarinaAPIError(f"Unable to download credentials from {zip_url}: {e}") from e
        if download.status_code >= 400:
            raise CarinaAPIError(
                f"Downloading credentials returned {download.status_code}: {_error_message(download)}",
                status_code=download.status_code,
            )
        return download.content

    def get_credentials(self, cluster_id: str) -> CredentialsBundle:
        """
        Download the credentials bundle of a cluster.

        The environment scripts in the bundle are annotated with the
        cluster name.

        Raises:
            CarinaAPIError: The request failed
            ArchiveInvalid: The downloaded archive is not a valid ZIP
        """
        cluster = self.get_cluster(cluster_id)
        response = self.request("GET", f"/clusters/{cluster_id}/credentials/zip")
        bundle = CredentialsBundle.from_zip(self._download_zip(response))
        bundle.annotate_cluster_name(cluster.name)
        return bundle
