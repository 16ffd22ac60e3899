"""
Carina - Container Cluster Client

A client library and command line tool for managing Docker Swarm and
Kubernetes clusters through the Carina API.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- credentials: Credentials bundle loading, endpoint parsing and TLS setup
- api: Data models exchanged with the Carina API
- auth: Identity service token exchange
- client: Cluster API client
"""

from carina.errors import CarinaError

__version__ = "1.0.0"

__all__ = ["CarinaError", "__version__"]
