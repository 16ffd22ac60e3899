"""
Rackspace identity authentication.

Exchanges a username and API key for a token and exposes the service
catalog so the Carina endpoint can be discovered instead of configured.
"""

import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from carina.errors import AuthenticationError

logger = logging.getLogger(__name__)

USER_AGENT = "carina-python"


class CatalogEndpoint(BaseModel):
    """One regional endpoint of a cataloged service."""

    model_config = ConfigDict(populate_by_name=True)

    public_url: str = Field(..., alias="publicURL")
    region: Optional[str] = None
    tenant_id: Optional[str] = Field(None, alias="tenantId")


class CatalogService(BaseModel):
    """A service listed in the identity service catalog."""

    name: str = ""
    type: str
    endpoints: List[CatalogEndpoint] = Field(default_factory=list)


class IdentityToken(BaseModel):
    """Authenticated identity: token plus service catalog."""

    id: str
    expires: Optional[str] = None
    tenant_id: Optional[str] = None
    catalog: List[CatalogService] = Field(default_factory=list)

    def endpoint_for(self, service_type: str, region: Optional[str] = None) -> Optional[str]:
        """
        Look up the public URL of a service in the catalog.

        Args:
            service_type: Catalog type, e.g. rax:container
            region: Preferred region; the first endpoint is used when omitted

        Returns:
            The public URL, or None when the service or region is not listed
        """
        for service in self.catalog:
            if service.type != service_type:
                continue
            for endpoint in service.endpoints:
                if region is None or (endpoint.region or "").upper() == region.upper():
                    return endpoint.public_url.rstrip("/")
        return None


def _token_from_response(payload: dict) -> IdentityToken:
    access = payload["access"]
    token = access["token"]
    return IdentityToken(
        id=token["id"],
        expires=token.get("expires"),
        tenant_id=(token.get("tenant") or {}).get("id"),
        catalog=access.get("serviceCatalog") or [],
    )


def authenticate(
    username: str,
    api_key: str,
    identity_endpoint: str,
    http_client: Optional[httpx.Client] = None,
    timeout: float = 30.0,
) -> IdentityToken:
    """
    Exchange an API key for an identity token.

    Args:
        username: Rackspace username
        api_key: Rackspace API key
        identity_endpoint: Identity service base URL (v2.0)
        http_client: Optional client to issue the request with
        timeout: Request timeout in seconds

    Returns:
        IdentityToken with the service catalog

    Raises:
        AuthenticationError: The request failed or the response was unusable
    """
    url = identity_endpoint.rstrip("/") + "/tokens"
    body = {
        "auth": {
            "RAX-KSKEY:apiKeyCredentials": {
                "username": username,
                "apiKey": api_key,
            }
        }
    }
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}

    client = http_client or httpx.Client(timeout=timeout)
    try:
        response = client.post(url, json=body, headers=headers)
    except httpx.HTTPError as e:
        raise AuthenticationError(f"Unable to reach identity service at {url}: {e}") from e
    finally:
        if http_client is None:
            client.close()

    if response.status_code >= 400:
        raise AuthenticationError(
            f"Authentication as {username} failed ({response.status_code}): {response.text}"
        )

    try:
        identity = _token_from_response(response.json())
    except (ValueError, KeyError, TypeError, ValidationError) as e:
        raise AuthenticationError(f"Unexpected identity service response: {e}") from e

    logger.info(f"Authenticated as {username}")
    return identity
