"""
Synchronous Azure SDK operations, one module per resource family.

    resource_group  - Resource Group
    network         - Virtual Network, Subnet, Public IP, Load Balancer and its children
    compute         - Virtual Machine Scale Set
"""
