"""
Client Module - Black Box Interface

Purpose: Authenticated access to the Carina cluster API
Interface: ClusterClient.login(), list_clusters(), get_cluster(), create_cluster(),
           resize_cluster(), delete_cluster(), get_credentials(), get_quotas()
Hidden: Headers, status handling, credentials archive download
"""

from .client import ClusterClient

__all__ = ["ClusterClient"]
