"""
AzureProvider initialization unit tests.
"""

import pytest
from unittest.mock import patch

from vmss_deployer.providers.azure.provider import AzureProvider


@pytest.fixture
def sdk_clients():
    with patch("azure.mgmt.resource.ResourceManagementClient") as resource, \
         patch("azure.mgmt.network.NetworkManagementClient") as network, \
         patch("azure.mgmt.compute.ComputeManagementClient") as compute:
        yield {"resource": resource, "network": network, "compute": compute}


class TestAzureProvider:

    def test_clients_before_initialization(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            AzureProvider().clients

    def test_missing_subscription_id(self, sdk_clients):
        with pytest.raises(ValueError, match="azure_subscription_id"):
            AzureProvider().initialize_clients({"azure_tenant_id": "tenant"})

    @patch("azure.identity.ClientSecretCredential")
    def test_service_principal_credential(self, mock_credential, sdk_clients):
        provider = AzureProvider()
        provider.initialize_clients({
            "azure_subscription_id": "sub-123",
            "azure_tenant_id": "tenant",
            "azure_client_id": "client",
            "azure_client_secret": "secret",
        })

        mock_credential.assert_called_once_with(tenant_id="tenant", client_id="client", client_secret="secret")
        assert provider.subscription_id == "sub-123"
        assert set(provider.clients) == {"resource", "network", "compute"}
        sdk_clients["network"].assert_called_once_with(
            credential=mock_credential.return_value, subscription_id="sub-123"
        )

    @patch("azure.identity.DefaultAzureCredential")
    @patch("azure.identity.ClientSecretCredential")
    def test_default_credential_without_service_principal(self, mock_secret, mock_default, sdk_clients):
        provider = AzureProvider()
        provider.initialize_clients({"azure_subscription_id": "sub-123", "azure_client_id": "client"})

        mock_secret.assert_not_called()
        mock_default.assert_called_once_with()
        assert provider.clients["compute"] is sdk_clients["compute"].return_value
