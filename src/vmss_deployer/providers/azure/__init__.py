"""
Azure provider package.

Exports the provider (SDK clients), the async control-plane client and the
DNS label generator used by the deployer.
"""

from .client import AzureControlPlaneClient
from .dns import AzureDnsLabelGenerator
from .provider import AzureProvider

__all__ = ["AzureProvider", "AzureControlPlaneClient", "AzureDnsLabelGenerator"]
