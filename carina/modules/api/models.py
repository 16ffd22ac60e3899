"""
Carina API data models.

These models define the structure of all data exchanged with the
Carina cluster API.
"""

from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Version of the API against which this library was developed
SUPPORTED_API_VERSION = "1.0"

# Endpoint type of the container service in the identity service catalog
CARINA_ENDPOINT_TYPE = "rax:container"


def coerce_number(value: Any) -> Any:
    """
    Accept numbers that the API sometimes sends as strings.

    "3", "3.0" and 3.0 all become 3; fractional values stay floats.
    """
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            raise ValueError(f"Expected a number, got {value!r}") from None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_version(version: str) -> Tuple[int, ...]:
    """Turn "1.10" into (1, 10) so versions compare numerically."""
    return tuple(int(part) for part in version.strip().split("."))


# Enums


class TaskType(str, Enum):
    """Types of cluster tasks."""

    RESIZE = "resize"


# Response Models (API Output)


class ClusterType(BaseModel):
    """Template used to create a new cluster."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    is_active: bool = Field(default=False, alias="active")
    coe: str = Field(default="", description="Container orchestration engine, e.g. swarm")
    host_type: str = Field(default="", description="Underlying host type, such as lxc or vm")

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        return coerce_number(v)


class Cluster(BaseModel):
    """A cluster of Docker or Kubernetes nodes."""

    id: str
    name: str
    cluster_type: Optional[ClusterType] = None
    node_count: Optional[int] = None
    status: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("node_count", mode="before")
    @classmethod
    def validate_node_count(cls, v):
        return coerce_number(v)

    @property
    def coe(self) -> str:
        """Container orchestration engine of the cluster, if known."""
        return self.cluster_type.coe if self.cluster_type else ""


class Quotas(BaseModel):
    """Account limits."""

    max_clusters: Optional[int] = None
    max_nodes_per_cluster: Optional[int] = None

    @field_validator("max_clusters", "max_nodes_per_cluster", mode="before")
    @classmethod
    def validate_numbers(cls, v):
        return coerce_number(v)


class APIVersion(BaseModel):
    """A version of the API."""

    id: str = ""
    status: str = ""
    min_version: str
    max_version: str


class APIMetadata(BaseModel):
    """Information about the API."""

    versions: List[APIVersion] = Field(default_factory=list)

    def supported_version_range(self) -> Tuple[str, str]:
        """
        Get the lowest minimum and highest maximum version across all versions.

        Returns:
            (min_version, max_version), or ("", "") when no versions are listed
        """
        if not self.versions:
            return "", ""
        lowest = min((v.min_version for v in self.versions), key=parse_version)
        highest = max((v.max_version for v in self.versions), key=parse_version)
        return lowest, highest

    def is_supported_version(self, version: str = SUPPORTED_API_VERSION) -> bool:
        """Check whether ``version`` falls within the range the API serves."""
        lowest, highest = self.supported_version_range()
        if not lowest:
            return False
        return parse_version(lowest) <= parse_version(version) <= parse_version(highest)


# Request Models (API Input)


class CreateClusterOpts(BaseModel):
    """Parameters for creating a cluster."""

    name: str = Field(..., min_length=1, description="Name of the cluster")
    cluster_type_id: int = Field(..., description="ID of the cluster type template")
    node_count: Optional[int] = Field(None, ge=1, description="Nodes in the cluster")


class ResizeInput(BaseModel):
    """Input parameters for a resize task."""

    node_count: int = Field(..., ge=1)


class ResizeTaskOpts(BaseModel):
    """Payload of a resize task."""

    type: TaskType = TaskType.RESIZE
    input: ResizeInput

    @classmethod
    def for_nodes(cls, nodes: int) -> "ResizeTaskOpts":
        return cls(input=ResizeInput(node_count=nodes))


class ErrorResponse(BaseModel):
    """JSON formatted error response from the API."""

    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def text(self) -> Optional[str]:
        return self.message or self.error
