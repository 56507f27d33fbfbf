"""
Azure resource naming conventions for a scale set deployment.

Every resource name that is not configured explicitly defaults to the scale
set name (see ScaleSetParameters.with_defaults()). This module derives the
names that are always computed:

    - Load-balancing rule:  {load_balancer_name}{port}       e.g. "web80"
    - Inbound NAT pool:     {vm_scale_set_name}{port}        e.g. "web22"
    - DNS label candidate:  {sanitized_name}-{6 hex chars}   e.g. "web-3f9a1c"
    - FQDN:                 {label}.{location}.cloudapp.azure.com
    - Computer name prefix: sanitized name, max 9 chars

DNS labels follow Azure restrictions: 3-63 chars, lowercase letters, digits
and hyphens, starting with a letter.

Usage:
    from vmss_deployer.providers.azure.naming import AzureNaming

    naming = AzureNaming("web")
    naming.inbound_nat_pool(22)            # "web22"
    naming.dns_label_candidate(0)          # "web-<hex>"
"""

import hashlib
import re

from ... import constants as CONSTANTS

MAX_DNS_LABEL_LENGTH = 63
MAX_COMPUTER_NAME_PREFIX_LENGTH = 9


class AzureNaming:
    """
    Generates derived Azure resource names for one scale set.

    Attributes:
        vm_scale_set_name: The scale set name used as seed
    """

    def __init__(self, vm_scale_set_name: str):
        self._vm_scale_set_name = vm_scale_set_name
        label_base = re.sub(r'[^a-z0-9-]', '', vm_scale_set_name.lower()).strip("-")
        if not label_base or not label_base[0].isalpha():
            label_base = f"vmss{label_base}"
        self._label_base = label_base[:MAX_DNS_LABEL_LENGTH - CONSTANTS.DNS_LABEL_SUFFIX_LENGTH - 1]

    @property
    def vm_scale_set_name(self) -> str:
        return self._vm_scale_set_name

    def load_balancing_rule(self, load_balancer_name: str, port: int) -> str:
        return f"{load_balancer_name}{port}"

    def inbound_nat_pool(self, port: int) -> str:
        return f"{self._vm_scale_set_name}{port}"

    def computer_name_prefix(self) -> str:
        """Windows limits computer names to 15 chars; the instance suffix takes 6."""
        prefix = re.sub(r'[^a-zA-Z0-9-]', '', self._vm_scale_set_name)
        return prefix[:MAX_COMPUTER_NAME_PREFIX_LENGTH] or "vmss"

    def dns_label_candidate(self, attempt: int) -> str:
        """
        Deterministic DNS label candidate for the given attempt.

        The same (name, attempt) pair always yields the same label, so a
        re-run checks the same candidates in the same order.
        """
        digest = hashlib.sha1(f"{self._vm_scale_set_name}:{attempt}".encode("utf-8")).hexdigest()
        return f"{self._label_base}-{digest[:CONSTANTS.DNS_LABEL_SUFFIX_LENGTH]}"

    @staticmethod
    def fqdn(domain_name_label: str, location: str) -> str:
        return f"{domain_name_label}.{location}.{CONSTANTS.FQDN_SUFFIX}"
