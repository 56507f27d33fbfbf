"""
Azure Compute operations - Virtual Machine Scale Set.

Creation sends the full model (OS profile with the administrator
credential, image, network profile wired to the subnet, the backend pool
and the inbound NAT pools). Updates are sent as a PATCH
(VirtualMachineScaleSetUpdate) carrying only the fields we control, so the
OS profile and anything else set outside this tool is left alone.
"""

import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)

from ....core.resource import ResourceIdentity
from ....core.state import ResourceState

if TYPE_CHECKING:
    from ..provider import AzureProvider

logger = logging.getLogger(__name__)


def _ids(sub_resources: Optional[List[Any]]) -> List[str]:
    return [sub_resource.id for sub_resource in sub_resources or []]


def _scale_set_state(identity: ResourceIdentity, vmss: Any) -> ResourceState:
    properties: Dict[str, Any] = {
        "vm_size": vmss.sku.name if vmss.sku else None,
        "capacity": vmss.sku.capacity if vmss.sku else None,
        "upgrade_mode": getattr(vmss.upgrade_policy.mode, "value", vmss.upgrade_policy.mode)
        if vmss.upgrade_policy else None,
    }

    profile = vmss.virtual_machine_profile
    if profile is not None and profile.storage_profile is not None and profile.storage_profile.image_reference:
        image = profile.storage_profile.image_reference
        properties["image"] = {
            "publisher": image.publisher,
            "offer": image.offer,
            "sku": image.sku,
            "version": image.version,
        }

    if profile is not None and profile.network_profile is not None:
        for nic in profile.network_profile.network_interface_configurations or []:
            for ip_configuration in nic.ip_configurations or []:
                properties["subnet_id"] = ip_configuration.subnet.id if ip_configuration.subnet else None
                properties["backend_address_pool_ids"] = _ids(ip_configuration.load_balancer_backend_address_pools)
                properties["inbound_nat_pool_ids"] = _ids(ip_configuration.load_balancer_inbound_nat_pools)
                break
            break

    return ResourceState(
        identity=identity,
        properties=properties,
        location=vmss.location,
        resource_id=vmss.id,
    )


def get_virtual_machine_scale_set(provider: 'AzureProvider', identity: ResourceIdentity) -> Optional[ResourceState]:
    if provider is None:
        raise ValueError("provider is required")

    try:
        vmss = provider.clients["compute"].virtual_machine_scale_sets.get(
            identity.resource_group_name, identity.name
        )
    except ResourceNotFoundError:
        return None
    return _scale_set_state(identity, vmss)


def create_virtual_machine_scale_set(
    provider: 'AzureProvider',
    identity: ResourceIdentity,
    spec: Dict[str, Any]
) -> ResourceState:
    """
    Create the Virtual Machine Scale Set.

    Args:
        provider: Initialized AzureProvider
        identity: Scale set identity
        spec: Create spec (vm_size, capacity, image, os profile fields,
            subnet_id, backend_address_pool_ids, inbound_nat_pool_ids, location)

    Raises:
        ValueError: If provider is None
        ClientAuthenticationError: If permission denied
        HttpResponseError: If creation fails
    """
    if provider is None:
        raise ValueError("provider is required")

    from azure.mgmt.compute.models import (
        ApiEntityReference,
        ImageReference,
        Sku,
        SubResource,
        UpgradePolicy,
        VirtualMachineScaleSet,
        VirtualMachineScaleSetIPConfiguration,
        VirtualMachineScaleSetNetworkConfiguration,
        VirtualMachineScaleSetNetworkProfile,
        VirtualMachineScaleSetOSProfile,
        VirtualMachineScaleSetStorageProfile,
        VirtualMachineScaleSetVMProfile,
    )

    ip_configuration = VirtualMachineScaleSetIPConfiguration(
        name=identity.name,
        subnet=ApiEntityReference(id=spec["subnet_id"]),
        load_balancer_backend_address_pools=[SubResource(id=i) for i in spec.get("backend_address_pool_ids", [])],
        load_balancer_inbound_nat_pools=[SubResource(id=i) for i in spec.get("inbound_nat_pool_ids", [])],
    )
    vmss = VirtualMachineScaleSet(
        location=spec["location"],
        sku=Sku(name=spec["vm_size"], capacity=spec["capacity"], tier="Standard"),
        upgrade_policy=UpgradePolicy(mode=spec.get("upgrade_mode") or "Manual"),
        virtual_machine_profile=VirtualMachineScaleSetVMProfile(
            os_profile=VirtualMachineScaleSetOSProfile(
                computer_name_prefix=spec.get("computer_name_prefix"),
                admin_username=spec.get("admin_username"),
                admin_password=spec.get("admin_password"),
            ),
            storage_profile=VirtualMachineScaleSetStorageProfile(
                image_reference=ImageReference(**spec["image"])
            ),
            network_profile=VirtualMachineScaleSetNetworkProfile(
                network_interface_configurations=[
                    VirtualMachineScaleSetNetworkConfiguration(
                        name=identity.name,
                        primary=True,
                        ip_configurations=[ip_configuration],
                    )
                ]
            ),
        ),
    )

    logger.info(f"Creating Virtual Machine Scale Set: {identity.name} ({spec['capacity']} x {spec['vm_size']})")

    try:
        poller = provider.clients["compute"].virtual_machine_scale_sets.begin_create_or_update(
            identity.resource_group_name, identity.name, vmss
        )
        result = poller.result()
        logger.info(f"✓ Virtual Machine Scale Set created: {identity.name}")
        return _scale_set_state(identity, result)
    except ClientAuthenticationError as e:
        logger.error(f"PERMISSION DENIED creating Virtual Machine Scale Set: {e.message}")
        raise
    except HttpResponseError as e:
        logger.error(f"Failed to create Virtual Machine Scale Set: {e.status_code} - {e.message}")
        raise
    except AzureError as e:
        logger.error(f"Azure error creating Virtual Machine Scale Set: {type(e).__name__}: {e}")
        raise


def update_virtual_machine_scale_set(
    provider: 'AzureProvider',
    identity: ResourceIdentity,
    spec: Dict[str, Any]
) -> ResourceState:
    """Patch the controlled fields of an existing Virtual Machine Scale Set."""
    if provider is None:
        raise ValueError("provider is required")

    from azure.mgmt.compute.models import (
        ApiEntityReference,
        ImageReference,
        Sku,
        SubResource,
        UpgradePolicy,
        VirtualMachineScaleSetUpdate,
        VirtualMachineScaleSetUpdateIPConfiguration,
        VirtualMachineScaleSetUpdateNetworkConfiguration,
        VirtualMachineScaleSetUpdateNetworkProfile,
        VirtualMachineScaleSetUpdateStorageProfile,
        VirtualMachineScaleSetUpdateVMProfile,
    )

    ip_configuration = VirtualMachineScaleSetUpdateIPConfiguration(
        name=identity.name,
        subnet=ApiEntityReference(id=spec["subnet_id"]),
        load_balancer_backend_address_pools=[SubResource(id=i) for i in spec.get("backend_address_pool_ids", [])],
        load_balancer_inbound_nat_pools=[SubResource(id=i) for i in spec.get("inbound_nat_pool_ids", [])],
    )
    update = VirtualMachineScaleSetUpdate(
        sku=Sku(name=spec["vm_size"], capacity=spec["capacity"], tier="Standard"),
        upgrade_policy=UpgradePolicy(mode=spec["upgrade_mode"]) if spec.get("upgrade_mode") else None,
        virtual_machine_profile=VirtualMachineScaleSetUpdateVMProfile(
            storage_profile=VirtualMachineScaleSetUpdateStorageProfile(
                image_reference=ImageReference(**spec["image"])
            ),
            network_profile=VirtualMachineScaleSetUpdateNetworkProfile(
                network_interface_configurations=[
                    VirtualMachineScaleSetUpdateNetworkConfiguration(
                        name=identity.name,
                        primary=True,
                        ip_configurations=[ip_configuration],
                    )
                ]
            ),
        ),
    )

    logger.info(f"Updating Virtual Machine Scale Set: {identity.name}")

    try:
        poller = provider.clients["compute"].virtual_machine_scale_sets.begin_update(
            identity.resource_group_name, identity.name, update
        )
        result = poller.result()
        logger.info(f"✓ Virtual Machine Scale Set updated: {identity.name}")
        return _scale_set_state(identity, result)
    except ClientAuthenticationError as e:
        logger.error(f"PERMISSION DENIED updating Virtual Machine Scale Set: {e.message}")
        raise
    except HttpResponseError as e:
        logger.error(f"Failed to update Virtual Machine Scale Set: {e.status_code} - {e.message}")
        raise
    except AzureError as e:
        logger.error(f"Azure error updating Virtual Machine Scale Set: {type(e).__name__}: {e}")
        raise
