"""
Async Azure control-plane client unit tests.

Test Classes:
    - TestDispatch: operation tables and error translation
    - TestLoadBalancerLock: writes through one Load Balancer are serialized
    - TestDnsLabelGenerator: candidates and availability check
"""

import asyncio
import threading
import time

import pytest
from unittest.mock import MagicMock, patch

from azure.core.exceptions import HttpResponseError, ServiceRequestError

from vmss_deployer.core.exceptions import TransportError
from vmss_deployer.core.resource import ResourceIdentity, ResourceType
from vmss_deployer.core.state import ResourceState
from vmss_deployer.providers.azure import client as client_module
from vmss_deployer.providers.azure.client import AzureControlPlaneClient, load_balancer_of
from vmss_deployer.providers.azure.dns import AzureDnsLabelGenerator

RG = ResourceIdentity(ResourceType.RESOURCE_GROUP, "rg")
VNET = ResourceIdentity(ResourceType.VIRTUAL_NETWORK, "webvnet", RG)
LB = ResourceIdentity(ResourceType.LOAD_BALANCER, "weblb", RG)
POOL = ResourceIdentity(ResourceType.BACKEND_ADDRESS_POOL, "weblbbepool", LB)
RULE = ResourceIdentity(ResourceType.LOAD_BALANCING_RULE, "weblb80", LB)
VMSS = ResourceIdentity(ResourceType.VIRTUAL_MACHINE_SCALE_SET, "web", RG)


@pytest.fixture
def mock_provider():
    provider = MagicMock()
    provider.subscription_id = "test-subscription-123"
    provider.clients = {"network": MagicMock(), "compute": MagicMock(), "resource": MagicMock()}
    return provider


class TestDispatch:

    def test_requires_provider(self):
        with pytest.raises(ValueError, match="provider is required"):
            AzureControlPlaneClient(None)

    def test_subscription_id_from_provider(self, mock_provider):
        assert AzureControlPlaneClient(mock_provider).subscription_id == "test-subscription-123"

    def test_read_runs_reader_for_type(self, mock_provider):
        calls = []

        def read_vnet(provider, identity):
            calls.append((provider, identity))
            return ResourceState(identity=identity, properties={"address_prefix": "10.0.0.0/16"})

        with patch.dict(client_module.READERS, {ResourceType.VIRTUAL_NETWORK: read_vnet}):
            state = asyncio.run(AzureControlPlaneClient(mock_provider).read(VNET))

        assert calls == [(mock_provider, VNET)]
        assert state.properties["address_prefix"] == "10.0.0.0/16"

    def test_scale_set_update_uses_patch(self):
        assert client_module.UPDATERS[ResourceType.VIRTUAL_MACHINE_SCALE_SET] is \
            client_module.compute.update_virtual_machine_scale_set
        assert client_module.CREATORS[ResourceType.VIRTUAL_MACHINE_SCALE_SET] is \
            client_module.compute.create_virtual_machine_scale_set
        assert client_module.UPDATERS[ResourceType.SUBNET] is client_module.CREATORS[ResourceType.SUBNET]

    def test_azure_error_becomes_transport_error(self, mock_provider):
        def failing_create(provider, identity, spec):
            raise HttpResponseError(message="conflict")

        with patch.dict(client_module.CREATORS, {ResourceType.VIRTUAL_NETWORK: failing_create}):
            with pytest.raises(TransportError) as exc_info:
                asyncio.run(AzureControlPlaneClient(mock_provider).create(VNET, {"address_prefix": "10.0.0.0/16"}))

        assert isinstance(exc_info.value.original_error, HttpResponseError)
        assert "failing_create" in str(exc_info.value)

    def test_not_found_on_read_is_absent(self, mock_provider):
        from azure.core.exceptions import ResourceNotFoundError

        mock_provider.clients["compute"].virtual_machine_scale_sets.get.side_effect = ResourceNotFoundError("missing")

        assert asyncio.run(AzureControlPlaneClient(mock_provider).read(VMSS)) is None

    def test_load_balancer_of(self):
        assert load_balancer_of(LB) == LB
        assert load_balancer_of(RULE) == LB
        assert load_balancer_of(VNET) is None


class TestLoadBalancerLock:

    def test_child_writes_are_serialized(self, mock_provider):
        guard = threading.Lock()
        active = {"now": 0, "max": 0}

        def write_child(provider, identity, spec):
            with guard:
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
            time.sleep(0.02)
            with guard:
                active["now"] -= 1
            return ResourceState(identity=identity)

        async def write_both(client):
            return await asyncio.gather(client.create(POOL, {}), client.create(RULE, {}))

        writers = {ResourceType.BACKEND_ADDRESS_POOL: write_child, ResourceType.LOAD_BALANCING_RULE: write_child}
        with patch.dict(client_module.CREATORS, writers):
            results = asyncio.run(write_both(AzureControlPlaneClient(mock_provider)))

        assert [state.identity for state in results] == [POOL, RULE]
        assert active["max"] == 1

    def test_unrelated_resources_have_no_lock(self, mock_provider):
        client = AzureControlPlaneClient(mock_provider)
        assert client._lock_for(VNET) is None
        assert client._lock_for(POOL) is client._lock_for(RULE)


class TestDnsLabelGenerator:

    def test_requires_provider(self):
        with pytest.raises(ValueError, match="provider is required"):
            AzureDnsLabelGenerator(None)

    def test_candidates_are_deterministic(self, mock_provider):
        generator = AzureDnsLabelGenerator(mock_provider)
        assert generator.generate_candidate("web", 0) == generator.generate_candidate("web", 0)
        assert generator.generate_candidate("web", 0).startswith("web-")

    def test_check_available(self, mock_provider):
        mock_provider.clients["network"].check_dns_name_availability.return_value = MagicMock(available=False)

        available = asyncio.run(AzureDnsLabelGenerator(mock_provider).check_available("web-1a2b3c", "eastus"))

        assert available is False
        mock_provider.clients["network"].check_dns_name_availability.assert_called_once_with(
            location="eastus", domain_name_label="web-1a2b3c"
        )

    def test_check_failure_becomes_transport_error(self, mock_provider):
        mock_provider.clients["network"].check_dns_name_availability.side_effect = ServiceRequestError("offline")

        with pytest.raises(TransportError, match="web-1a2b3c"):
            asyncio.run(AzureDnsLabelGenerator(mock_provider).check_available("web-1a2b3c", "eastus"))
