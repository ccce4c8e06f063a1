"""
Connector routing.

Maps a connector type code to the object that knows which endpoints its
collections live under.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class UnsupportedConnectorError(ValueError):
    """Unknown connector type code or resource."""


class ConnectionSupport(ABC):
    """Endpoint routing for one connector type."""

    @property
    @abstractmethod
    def code(self) -> str:
        pass

    @property
    @abstractmethod
    def resources(self) -> dict[str, str]:
        """Resource name -> endpoint template."""
        pass

    def resolve_endpoint(self, resource: str, **params: str) -> str:
        """Format the endpoint for a resource.

        Raises:
            UnsupportedConnectorError: Unknown resource or missing parameter
        """
        try:
            template = self.resources[resource]
        except KeyError:
            raise UnsupportedConnectorError(
                f"Resource '{resource}' is not supported by connector '{self.code}'."
            ) from None
        try:
            return template.format(**params)
        except KeyError as e:
            raise UnsupportedConnectorError(
                f"Resource '{resource}' requires parameter {e.args[0]!r}."
            ) from None


class FivetranConnectionSupport(ConnectionSupport):
    CONNECTOR_TYPE_CODE = "fivetran"

    @property
    def code(self) -> str:
        return self.CONNECTOR_TYPE_CODE

    @property
    def resources(self) -> dict[str, str]:
        return {
            "groups": "groups",
            "connectors": "groups/{group_id}/connectors",
            "destinations": "destinations",
            "users": "users",
        }


_REGISTRY: dict[str, type[ConnectionSupport]] = {
    FivetranConnectionSupport.CONNECTOR_TYPE_CODE: FivetranConnectionSupport,
}


def get_connection_support(connector_type_code: str) -> ConnectionSupport:
    try:
        return _REGISTRY[connector_type_code]()
    except KeyError:
        raise UnsupportedConnectorError(
            f"Connector type '{connector_type_code}' is not supported."
        ) from None


def available_connectors() -> list[str]:
    return sorted(_REGISTRY)
