"""Provider API client exports."""

from .client import ProviderClient, ProviderError, map_status, parse_instances
from .types import CreateInstanceOptions, Instance, InstanceLookup, ProviderResult

__all__ = [
    "CreateInstanceOptions",
    "Instance",
    "InstanceLookup",
    "ProviderClient",
    "ProviderError",
    "ProviderResult",
    "map_status",
    "parse_instances",
]
