from imgsync.domain.image.port.discovery import ChartDiscovery
from imgsync.domain.image.port.registry_client import RegistryClient, RegistryClientFactory

__all__ = ["ChartDiscovery", "RegistryClient", "RegistryClientFactory"]
