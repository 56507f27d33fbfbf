"""
End-to-end deployment pipeline tests against the in-memory control plane.
"""

import asyncio
import json
from dataclasses import replace

import pytest
from unittest.mock import MagicMock, patch

from conftest import FakeControlPlane, FakeLabelGenerator
from vmss_deployer import deployer
from vmss_deployer.core.exceptions import ConfigurationError, GenerationExhaustedError, RemoteReadError
from vmss_deployer.core.executor import NodeOutcome, NodeStatus
from vmss_deployer.core.resource import ResourceIdentity, ResourceType
from vmss_deployer.core.topology import scale_set_identity


def _deploy(params, client, label_generator, **kwargs):
    return asyncio.run(deployer.deploy_scale_set(params, client, label_generator, **kwargs))


class TestDeployScaleSet:

    def test_first_deployment(self, linux_params, fake_client, label_generator):
        result = _deploy(linux_params, fake_client, label_generator)

        assert result.succeeded
        assert result.parameters.location == "eastus"
        assert result.parameters.domain_name_label == "web-0"
        assert result.fqdn == "web-0.eastus.cloudapp.azure.com"
        assert result.connection_string == "ssh azureuser@web-0.eastus.cloudapp.azure.com -p <port>"
        assert result.port_range == "50000..50004"
        assert result.scale_set is not None
        assert result.scale_set.get("capacity") == 2
        assert all(node.outcome == NodeOutcome.CREATED for node in result.convergence.nodes.values())

    def test_second_deployment_changes_nothing(self, linux_params, fake_client, label_generator):
        _deploy(linux_params, fake_client, label_generator)
        fake_client.calls.clear()

        result = _deploy(linux_params, fake_client, label_generator)

        assert result.succeeded
        assert fake_client.calls_of("create") == []
        assert fake_client.calls_of("update") == []
        assert result.fqdn == "web-0.eastus.cloudapp.azure.com"
        assert len(result.convergence.with_outcome(NodeOutcome.SATISFIED)) == len(result.convergence.nodes)

    def test_capacity_change_updates_only_the_scale_set(self, linux_params, fake_client, label_generator):
        _deploy(linux_params, fake_client, label_generator)
        fake_client.calls.clear()

        result = _deploy(replace(linux_params, instance_count=4), fake_client, label_generator)

        identity = scale_set_identity(result.parameters)
        assert fake_client.calls_of("update") == [identity]
        assert "admin_password" not in fake_client.specs[identity]
        assert result.scale_set.get("capacity") == 4
        assert result.port_range == "50000..50008"

    def test_windows_image_connection_hint(self, linux_params, fake_client, label_generator):
        params = replace(linux_params, image_name="Win2016Datacenter")

        result = _deploy(params, fake_client, label_generator)

        assert result.connection_string == "mstsc /v:web-0.eastus.cloudapp.azure.com:<port>"
        nat_pools = [identity for identity in result.snapshot
                     if identity.resource_type == ResourceType.INBOUND_NAT_POOL]
        assert [identity.name for identity in nat_pools] == ["web3389"]

    def test_location_inherited_from_resource_group(self, linux_params, fake_client, label_generator):
        fake_client.seed(ResourceIdentity(ResourceType.RESOURCE_GROUP, "web"), location="westeurope")

        result = _deploy(linux_params, fake_client, label_generator)

        assert result.parameters.location == "westeurope"
        assert result.fqdn == "web-0.westeurope.cloudapp.azure.com"

    def test_existing_resource_group_in_other_region_is_left_alone(self, linux_params, fake_client, label_generator):
        resource_group = ResourceIdentity(ResourceType.RESOURCE_GROUP, "web")
        fake_client.seed(resource_group, location="eastus")

        result = _deploy(replace(linux_params, location="westeurope"), fake_client, label_generator)

        assert result.succeeded
        assert result.convergence.nodes[resource_group].outcome == NodeOutcome.SATISFIED
        assert fake_client.calls_of("update") == []
        assert resource_group not in fake_client.calls_of("create")
        assert result.fqdn == "web-0.westeurope.cloudapp.azure.com"

    def test_taken_dns_label_is_skipped(self, linux_params, fake_client):
        result = _deploy(linux_params, fake_client, FakeLabelGenerator(taken={"web-0", "web-1"}))

        assert result.parameters.domain_name_label == "web-2"

    def test_failed_scale_set_reports_no_scale_set(self, linux_params, fake_client, label_generator):
        identity = scale_set_identity(linux_params.with_defaults())
        fake_client.fail_writes[identity] = "quota exceeded"

        result = _deploy(linux_params, fake_client, label_generator)

        assert not result.succeeded
        assert result.scale_set is None
        assert result.convergence.nodes[identity].status == NodeStatus.FAILED
        assert [node.identity for node in result.convergence.failed] == [identity]

    def test_invalid_parameters_touch_nothing(self, linux_params, fake_client, label_generator):
        with pytest.raises(ConfigurationError):
            _deploy(replace(linux_params, backend_ports=(80, 80)), fake_client, label_generator)

        assert fake_client.calls == []

    def test_unknown_image(self, linux_params, fake_client, label_generator):
        with pytest.raises(ConfigurationError, match="image"):
            _deploy(replace(linux_params, image_name="Plan9"), fake_client, label_generator)

    def test_read_failure_aborts_before_any_write(self, linux_params, fake_client, label_generator):
        fake_client.fail_reads[ResourceIdentity(ResourceType.RESOURCE_GROUP, "web")] = "timeout"

        with pytest.raises(RemoteReadError):
            _deploy(linux_params, fake_client, label_generator)

        assert fake_client.calls_of("create") == []

    def test_dns_labels_exhausted(self, linux_params, fake_client):
        generator = FakeLabelGenerator(taken={f"web-{attempt}" for attempt in range(10)})

        with pytest.raises(GenerationExhaustedError):
            _deploy(linux_params, fake_client, generator)

        assert fake_client.calls_of("create") == []


class TestRunDeployment:

    @pytest.fixture
    def project_path(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({
            "vm_scale_set_name": "web",
            "image_name": "UbuntuLTS",
            "mode": "INFO",
        }))
        (tmp_path / "config_credentials_azure.json").write_text(json.dumps({
            "azure_subscription_id": "00000000-0000-0000-0000-000000000001",
            "admin_username": "azureuser",
            "admin_password": "S3cret!Passw0rd",
        }))
        return tmp_path

    def test_wires_project_to_provider(self, project_path):
        fake_client = FakeControlPlane()
        with patch.object(deployer, "AzureProvider") as mock_provider_cls, \
             patch.object(deployer, "AzureControlPlaneClient", return_value=fake_client), \
             patch.object(deployer, "AzureDnsLabelGenerator", return_value=FakeLabelGenerator()):
            result = deployer.run_deployment(project_path, auto_approve=True)

        mock_provider_cls.return_value.initialize_clients.assert_called_once()
        credentials = mock_provider_cls.return_value.initialize_clients.call_args[0][0]
        assert credentials["azure_subscription_id"] == "00000000-0000-0000-0000-000000000001"
        assert result.succeeded
        assert result.parameters.admin_username == "azureuser"
        assert fake_client.specs[scale_set_identity(result.parameters)]["admin_password"] == "S3cret!Passw0rd"

    def test_declining_every_prompt_applies_nothing(self, project_path):
        fake_client = FakeControlPlane()
        answers = MagicMock(return_value="l")
        with patch.object(deployer, "AzureProvider"), \
             patch.object(deployer, "AzureControlPlaneClient", return_value=fake_client), \
             patch.object(deployer, "AzureDnsLabelGenerator", return_value=FakeLabelGenerator()):
            result = deployer.run_deployment(project_path, input_func=answers)

        answers.assert_called_once()
        assert fake_client.calls_of("create") == []
        assert not result.succeeded
        assert result.scale_set is None

    def test_missing_credentials_file(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({"vm_scale_set_name": "web"}))

        with pytest.raises(ConfigurationError, match="config_credentials_azure.json"):
            deployer.run_deployment(tmp_path, auto_approve=True)
