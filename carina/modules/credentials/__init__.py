"""
Credentials Module - Black Box Interface

Purpose: Turn a cluster credentials bundle into a usable connection profile
Interface: CredentialsBundle.from_directory(), CredentialsBundle.from_zip(),
           parse_host(), get_tls_config(), verify()
Hidden: Archive layout quirks, endpoint text scanning, SSL context assembly
"""

from .bundle import CredentialsBundle, VERIFY_CREDENTIALS_TIMEOUT
from .hostparse import parse_host
from .tls import TLSConfig, build_tls_config

__all__ = [
    "CredentialsBundle",
    "TLSConfig",
    "VERIFY_CREDENTIALS_TIMEOUT",
    "build_tls_config",
    "parse_host",
]
