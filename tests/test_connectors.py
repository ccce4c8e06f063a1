"""Tests for connector routing."""

import pytest

from pagewalk.core.connectors import (
    FivetranConnectionSupport,
    UnsupportedConnectorError,
    available_connectors,
    get_connection_support,
)


def test_fivetran_is_registered() -> None:
    assert "fivetran" in available_connectors()
    assert isinstance(get_connection_support("fivetran"), FivetranConnectionSupport)


def test_unknown_connector_is_rejected() -> None:
    with pytest.raises(UnsupportedConnectorError, match="'salesforce' is not supported"):
        get_connection_support("salesforce")


def test_resolve_endpoint_formats_parameters() -> None:
    support = get_connection_support("fivetran")

    assert support.resolve_endpoint("groups") == "groups"
    assert support.resolve_endpoint("connectors", group_id="g1") == "groups/g1/connectors"


def test_resolve_endpoint_errors() -> None:
    support = get_connection_support("fivetran")

    with pytest.raises(UnsupportedConnectorError, match="group_id"):
        support.resolve_endpoint("connectors")
    with pytest.raises(UnsupportedConnectorError, match="teams"):
        support.resolve_endpoint("teams")
