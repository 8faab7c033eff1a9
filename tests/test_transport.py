"""Tests for transport construction."""

import pytest

from redfish_oob.errors import MissingConfigurationError
from redfish_oob.transport import (
    DEFAULT_TIMEOUT,
    HEADER_USER_AGENT,
    build_transport,
    get_base_path,
    get_resource_id_from_url,
)


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://10.0.0.1/redfish/v1/Systems/1234", "1234"),
        ("https://10.0.0.1/redfish/v1/Systems/System.Embedded.1/", "System.Embedded.1"),
        ("/redfish/v1/Managers/BMC1/VirtualMedia/CD1", "CD1"),
        ("https://10.0.0.1/", ""),
        ("", ""),
    ],
)
def test_get_resource_id_from_url(url, expected):
    """Test the last path segment is returned."""
    assert get_resource_id_from_url(url) == expected


def test_get_base_path():
    """Test system id and Systems collection are stripped."""
    assert get_base_path("https://10.0.0.1/redfish/v1/Systems/1234") == "https://10.0.0.1/redfish/v1"


def test_get_base_path_keeps_port():
    """Test host and port are preserved."""
    assert (
        get_base_path("https://bmc.example.com:8443/redfish/v1/Systems/1")
        == "https://bmc.example.com:8443/redfish/v1"
    )


def test_get_base_path_without_systems_segment():
    """Test everything before the system id is kept when there is no Systems segment."""
    assert get_base_path("http://127.0.0.1:8000/redfish/v1/abc") == "http://127.0.0.1:8000/redfish/v1"


def test_get_base_path_requires_scheme_and_host():
    """Test relative URLs are rejected."""
    with pytest.raises(MissingConfigurationError) as exc_info:
        get_base_path("redfish/v1/Systems/1")

    assert exc_info.value.what == "Redfish URL"


def test_build_transport_defaults():
    """Test default transport verifies TLS and honours proxies."""
    config = build_transport("https://10.0.0.1/redfish/v1")

    assert config.base_path == "https://10.0.0.1/redfish/v1"
    assert config.session.verify is True
    assert config.session.trust_env is True
    assert config.verify is True
    assert config.proxies is None
    assert config.session.headers["User-Agent"] == HEADER_USER_AGENT
    assert config.user_agent == HEADER_USER_AGENT
    assert config.timeout == DEFAULT_TIMEOUT
    assert config.auth is None
    assert config.session.auth is None


def test_build_transport_insecure_without_proxy():
    """Test insecure and no-proxy flags become per-request settings."""
    config = build_transport("https://10.0.0.1/redfish/v1", insecure=True, use_proxy=False)

    assert config.verify is False
    assert config.session.verify is False
    assert config.proxies == {"http": None, "https": None, "all": None}
    # Environment settings other than proxies still apply
    assert config.session.trust_env is True


def test_build_transport_auth_requires_both_credentials():
    """Test basic auth is only attached with username and password."""
    assert build_transport("https://h/redfish/v1", username="root").auth is None
    assert build_transport("https://h/redfish/v1", password="calvin").auth is None

    config = build_transport("https://h/redfish/v1", username="root", password="calvin")
    assert config.session.auth is config.auth
    assert config.auth.username == "root"


def test_build_transport_default_headers():
    """Test extra headers are sent with every request."""
    config = build_transport("https://h/redfish/v1", headers={"Host": "bmc.example.com"})

    assert config.default_headers == {"Host": "bmc.example.com"}
    assert config.session.headers["Host"] == "bmc.example.com"
