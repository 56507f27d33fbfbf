"""
DNS label generation for the scale set's public IP.

Candidates come from AzureNaming.dns_label_candidate() (deterministic per
seed and attempt); availability is checked with
NetworkManagementClient.check_dns_name_availability in a worker thread.
"""

import asyncio
import functools

from azure.core.exceptions import AzureError

from ...core.exceptions import TransportError
from .naming import AzureNaming
from .operations import network
from .provider import AzureProvider


class AzureDnsLabelGenerator:
    """NameGenerator backed by the Azure DNS availability check."""

    def __init__(self, provider: AzureProvider):
        if provider is None:
            raise ValueError("provider is required")
        self.provider = provider

    def generate_candidate(self, seed: str, attempt: int) -> str:
        return AzureNaming(seed).dns_label_candidate(attempt)

    async def check_available(self, candidate: str, location: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None,
                functools.partial(network.check_dns_name_availability, self.provider, location, candidate)
            )
        except AzureError as e:
            raise TransportError(f"DNS availability check failed for '{candidate}': {e}", original_error=e) from e
