"""
Provider implementations package.

Package Structure:
    providers/
    ├── __init__.py         # This file
    ├── base.py             # Shared base class
    └── azure/              # Azure implementation
        ├── provider.py     # AzureProvider (SDK clients)
        ├── client.py       # Async control-plane client
        ├── dns.py          # DNS label generator
        ├── naming.py       # Derived resource names
        ├── images.py       # Image aliases
        └── operations/     # Synchronous SDK operations per resource family
"""
