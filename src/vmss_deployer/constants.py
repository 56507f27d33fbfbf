# ==========================================
# 1. Configuration Filenames
# ==========================================
CONFIG_FILE = "config.json"
CONFIG_CREDENTIALS_AZURE_FILE = "config_credentials_azure.json"

# Keys required in specific config files
CONFIG_SCHEMAS = {
    CONFIG_FILE: ["vm_scale_set_name"],
    CONFIG_CREDENTIALS_AZURE_FILE: ["azure_subscription_id"],
}

# ==========================================
# 2. Scale Set Defaults
# ==========================================
DEFAULT_IMAGE_NAME = "Win2016Datacenter"
DEFAULT_INSTANCE_COUNT = 2
DEFAULT_BACKEND_PORTS = [80]
DEFAULT_VM_SIZE = "Standard_DS1_v2"
DEFAULT_ALLOCATION_METHOD = "Static"
ALLOCATION_METHODS = ["Static", "Dynamic"]
DEFAULT_VNET_ADDRESS_PREFIX = "192.168.0.0/16"
DEFAULT_SUBNET_ADDRESS_PREFIX = "192.168.1.0/24"
UPGRADE_MODES = ["Automatic", "Manual", "Rolling"]

# Used when neither the parameters nor any existing resource carry a location
DEFAULT_LOCATION = "eastus"

# ==========================================
# 3. Inbound NAT Port Allocation
# ==========================================
FIRST_PORT_RANGE_START = 50000
PORT_RANGE_STRIDE = 2000
MAX_PORT = 65535

LINUX_NAT_BACKEND_PORTS = [22]
WINDOWS_NAT_BACKEND_PORTS = [3389]

# ==========================================
# 4. Name Generation & Execution
# ==========================================
MAX_DNS_LABEL_ATTEMPTS = 10
DNS_LABEL_SUFFIX_LENGTH = 6
FQDN_SUFFIX = "cloudapp.azure.com"

MAX_PARALLEL_OPERATIONS = 8
DEFAULT_PROTOCOL = "Tcp"
