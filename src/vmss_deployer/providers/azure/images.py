"""
Azure marketplace image aliases.

Maps the short image names accepted in config.json to the marketplace
image reference and OS type used by the scale set, and derives the values
that depend on the OS type (default NAT backend ports, connection hint).

Usage:
    from vmss_deployer.providers.azure.images import resolve_image

    image = resolve_image("UbuntuLTS")
    image.os_type                 # "Linux"
    image.image_reference()       # {"publisher": "Canonical", ...}
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from ... import constants as CONSTANTS
from ...core.exceptions import ConfigurationError

LINUX = "Linux"
WINDOWS = "Windows"


@dataclass(frozen=True)
class ImageAndOsType:
    """
    A resolved marketplace image.

    Attributes:
        publisher: Image publisher (e.g. "Canonical")
        offer: Image offer (e.g. "UbuntuServer")
        sku: Image SKU (e.g. "16.04-LTS")
        version: Image version ("latest" for aliases)
        os_type: "Linux" or "Windows"
    """

    publisher: str
    offer: str
    sku: str
    os_type: str
    version: str = "latest"

    @property
    def is_windows(self) -> bool:
        return self.os_type == WINDOWS

    def image_reference(self) -> Dict[str, str]:
        return {
            "publisher": self.publisher,
            "offer": self.offer,
            "sku": self.sku,
            "version": self.version,
        }

    def default_nat_backend_ports(self) -> Tuple[int, ...]:
        """Remote access port per instance: SSH for Linux, RDP for Windows."""
        ports = CONSTANTS.WINDOWS_NAT_BACKEND_PORTS if self.is_windows else CONSTANTS.LINUX_NAT_BACKEND_PORTS
        return tuple(ports)

    def update_ports(self, ports: Optional[Sequence[int]]) -> Tuple[int, ...]:
        """Return the given ports, or the OS default when none were given."""
        if ports:
            return tuple(ports)
        return self.default_nat_backend_ports()

    def connection_string(self, fqdn: str, user_name: str, port: str = "<port>") -> str:
        """
        Command line hint for connecting to one instance.

        Example:
            >>> resolve_image("UbuntuLTS").connection_string("web-1a2b3c.eastus.cloudapp.azure.com", "azureuser")
            "ssh azureuser@web-1a2b3c.eastus.cloudapp.azure.com -p <port>"
        """
        if self.is_windows:
            return f"mstsc /v:{fqdn}:{port}"
        return f"ssh {user_name}@{fqdn} -p {port}"


IMAGE_ALIASES: Dict[str, ImageAndOsType] = {
    "CentOS": ImageAndOsType("OpenLogic", "CentOS", "7.5", LINUX),
    "CoreOS": ImageAndOsType("CoreOS", "CoreOS", "Stable", LINUX),
    "Debian": ImageAndOsType("credativ", "Debian", "8", LINUX),
    "openSUSE-Leap": ImageAndOsType("SUSE", "openSUSE-Leap", "42.3", LINUX),
    "RHEL": ImageAndOsType("RedHat", "RHEL", "7-RAW", LINUX),
    "SLES": ImageAndOsType("SUSE", "SLES", "12-SP2", LINUX),
    "UbuntuLTS": ImageAndOsType("Canonical", "UbuntuServer", "16.04-LTS", LINUX),
    "Win2016Datacenter": ImageAndOsType("MicrosoftWindowsServer", "WindowsServer", "2016-Datacenter", WINDOWS),
    "Win2012R2Datacenter": ImageAndOsType("MicrosoftWindowsServer", "WindowsServer", "2012-R2-Datacenter", WINDOWS),
    "Win2012Datacenter": ImageAndOsType("MicrosoftWindowsServer", "WindowsServer", "2012-Datacenter", WINDOWS),
    "Win2008R2SP1": ImageAndOsType("MicrosoftWindowsServer", "WindowsServer", "2008-R2-SP1", WINDOWS),
}


def resolve_image(image_name: str) -> ImageAndOsType:
    """
    Look up an image alias (case-insensitive).

    Raises:
        ConfigurationError: If the alias is unknown
    """
    for alias, image in IMAGE_ALIASES.items():
        if alias.lower() == (image_name or "").lower():
            return image
    raise ConfigurationError(
        f"Unknown image '{image_name}'. Valid images: {', '.join(IMAGE_ALIASES)}",
        reference="image_name"
    )
