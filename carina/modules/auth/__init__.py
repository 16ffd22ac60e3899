"""
Auth Module - Black Box Interface

Purpose: Obtain identity tokens for the Carina API
Interface: authenticate(), IdentityToken.endpoint_for()
Hidden: Identity payload format, service catalog layout
"""

from .identity import CatalogEndpoint, CatalogService, IdentityToken, authenticate

__all__ = ["CatalogEndpoint", "CatalogService", "IdentityToken", "authenticate"]
