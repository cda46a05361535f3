"""Connector registry.

The registry is an ordinary object: build one at startup, register the
connectors the deployment needs, and pass it to the components that fetch
signals.
"""

import logging
from collections.abc import Iterable

from .base import SignalConnector
from .exceptions import ConnectorNotFoundError

logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """
    Registry of signal connectors keyed by their type tag.

    Example:
        registry = ConnectorRegistry([MixpanelConnector(), WarehouseConnector()])
        connector = registry.require("mixpanel")
    """

    def __init__(self, connectors: Iterable[SignalConnector] | None = None) -> None:
        self._connectors: dict[str, SignalConnector] = {}
        for connector in connectors or ():
            self.register(connector)

    def register(self, connector: SignalConnector) -> None:
        """
        Register a connector under its ``name``.

        Registering a second connector with the same name replaces the first.
        """
        if connector.name in self._connectors:
            logger.info("Replacing registered connector '%s'", connector.name)
        self._connectors[connector.name] = connector

    def unregister(self, name: str) -> bool:
        """
        Remove a connector.

        Returns:
            True if the connector was removed, False if it didn't exist.
        """
        return self._connectors.pop(name, None) is not None

    def get(self, name: str) -> SignalConnector | None:
        """Return the connector registered as ``name``, or None."""
        return self._connectors.get(name)

    def require(self, name: str) -> SignalConnector:
        """
        Return the connector registered as ``name``.

        Raises:
            ConnectorNotFoundError: If no such connector is registered.
        """
        connector = self._connectors.get(name)
        if connector is None:
            raise ConnectorNotFoundError(name)
        return connector

    def list_connectors(self) -> list[str]:
        """List registered connector names, sorted."""
        return sorted(self._connectors)

    def is_registered(self, name: str) -> bool:
        return name in self._connectors

    def __contains__(self, name: object) -> bool:
        return name in self._connectors

    def __len__(self) -> int:
        return len(self._connectors)
