"""
Azure provider - SDK client initialization.

SDK Clients Initialized:
    - ResourceManagementClient: For Resource Group management
    - NetworkManagementClient: For VNet, Subnet, Public IP, Load Balancer, DNS checks
    - ComputeManagementClient: For the Virtual Machine Scale Set

Usage:
    from vmss_deployer.providers.azure.provider import AzureProvider

    provider = AzureProvider()
    provider.initialize_clients(credentials)
    # Access clients: provider.clients["resource"], provider.clients["network"], ...
"""

from typing import Any, Dict

from ..base import BaseProvider


class AzureProvider(BaseProvider):
    """
    Holds the Azure SDK clients for one subscription.

    Attributes:
        name: Provider identifier ("azure")
        subscription_id: Subscription all resources are deployed to
        clients: Dictionary of initialized Azure SDK clients
    """

    name: str = "azure"

    def initialize_clients(self, credentials: Dict[str, Any]) -> None:
        """
        Initialize Azure SDK clients.

        Args:
            credentials: Azure credentials dictionary with:
                - azure_subscription_id: Azure subscription ID (REQUIRED)
                - azure_tenant_id: Azure AD tenant ID (optional)
                - azure_client_id: Service principal client ID (optional)
                - azure_client_secret: Service principal secret (optional)

        Raises:
            ValueError: If the subscription id is missing
        """
        if not credentials.get("azure_subscription_id"):
            raise ValueError(
                "Missing required credential 'azure_subscription_id'. "
                "Azure subscription ID must be provided in config_credentials_azure.json."
            )
        self._subscription_id = credentials["azure_subscription_id"]

        credential = self._get_credential(credentials)
        self._initialize_sdk_clients(credential)

        self._initialized = True
        self._log_clients_ready()

    def _get_credential(self, credentials: Dict[str, Any]) -> Any:
        """Service principal when fully configured, DefaultAzureCredential otherwise."""
        from azure.identity import ClientSecretCredential, DefaultAzureCredential

        client_id = credentials.get("azure_client_id")
        client_secret = credentials.get("azure_client_secret")
        tenant_id = credentials.get("azure_tenant_id")

        if client_id and client_secret and tenant_id:
            return ClientSecretCredential(
                tenant_id=tenant_id,
                client_id=client_id,
                client_secret=client_secret
            )
        return DefaultAzureCredential()

    def _initialize_sdk_clients(self, credential: Any) -> None:
        from azure.mgmt.compute import ComputeManagementClient
        from azure.mgmt.network import NetworkManagementClient
        from azure.mgmt.resource import ResourceManagementClient

        subscription_id = self._subscription_id

        self._clients["resource"] = ResourceManagementClient(credential=credential, subscription_id=subscription_id)
        self._clients["network"] = NetworkManagementClient(credential=credential, subscription_id=subscription_id)
        self._clients["compute"] = ComputeManagementClient(credential=credential, subscription_id=subscription_id)
