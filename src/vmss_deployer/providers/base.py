"""
Shared base class for provider implementations.

Contents:
    - BaseProvider: SDK client storage and initialization guard
"""

from typing import Any, Dict

from ..logger import logger


class BaseProvider:
    """
    Base class for cloud provider implementations.

    Subclasses fill self._clients in initialize_clients() and set
    self._initialized; accessing clients before that raises.
    """

    name: str = ""

    def __init__(self):
        self._subscription_id: str = ""
        self._clients: Dict[str, Any] = {}
        self._initialized: bool = False

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    @property
    def clients(self) -> Dict[str, Any]:
        """Return initialized SDK clients."""
        if not self._initialized:
            raise RuntimeError(
                "Provider not initialized. Call initialize_clients() first."
            )
        return self._clients

    def _log_clients_ready(self) -> None:
        logger.info(f"✓ {self.name} clients initialized: {', '.join(sorted(self._clients))}")
