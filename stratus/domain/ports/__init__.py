"""
Domain Ports Package

Contracts between the use cases and the outside world: the cloud REST API,
resource and data-source adapters, the state store and the event bus.
"""

from stratus.domain.ports.cloud_api_port import CloudApiPort
from stratus.domain.ports.resource_port import ResourcePort, DataSourcePort, ProviderPort
from stratus.domain.ports.state_store_port import StateStorePort
from stratus.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "CloudApiPort",
    "ResourcePort",
    "DataSourcePort",
    "ProviderPort",
    "StateStorePort",
    "EventBusPort",
]
