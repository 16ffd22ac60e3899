"""
API Module - Black Box Interface

Purpose: Data models exchanged with the Carina cluster API
Interface: Cluster, ClusterType, CreateClusterOpts, APIMetadata, Quotas
Hidden: Wire-format quirks such as numbers sent as strings
"""

from .models import (
    CARINA_ENDPOINT_TYPE,
    SUPPORTED_API_VERSION,
    APIMetadata,
    APIVersion,
    Cluster,
    ClusterType,
    CreateClusterOpts,
    ErrorResponse,
    Quotas,
    ResizeTaskOpts,
    TaskType,
)

__all__ = [
    "CARINA_ENDPOINT_TYPE",
    "SUPPORTED_API_VERSION",
    "APIMetadata",
    "APIVersion",
    "Cluster",
    "ClusterType",
    "CreateClusterOpts",
    "ErrorResponse",
    "Quotas",
    "ResizeTaskOpts",
    "TaskType",
]
