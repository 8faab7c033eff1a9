"""Tests for reaching a BMC through an SSH jumphost."""

import pytest
from unittest.mock import MagicMock, patch

from redfish_oob.errors import MissingConfigurationError
from redfish_oob.tunnel import SSHTunnel


URL = "https://10.1.2.3/redfish/v1/Systems/1"


@pytest.fixture
def forwarder_class():
    with patch("redfish_oob.tunnel.SSHTunnelForwarder") as mock_class:
        mock_class.return_value.local_bind_port = 54321
        yield mock_class


@pytest.mark.parametrize(
    "url,address,host_header",
    [
        (URL, ("10.1.2.3", 443), "10.1.2.3"),
        ("https://bmc.example.com:8443/redfish/v1/Systems/1", ("bmc.example.com", 8443), "bmc.example.com:8443"),
        ("http://10.1.2.3/redfish/v1/Systems/1", ("10.1.2.3", 80), "10.1.2.3"),
    ],
)
def test_target_taken_from_url(url, address, host_header):
    """Test the forwarded address and Host header come from the management URL."""
    tunnel = SSHTunnel(url, "bastion.example.com")

    assert tunnel.bmc_address == address
    assert tunnel.headers == {"Host": host_header}


def test_url_without_host_rejected():
    """Test a management URL without a host cannot be tunneled."""
    with pytest.raises(MissingConfigurationError):
        SSHTunnel("/redfish/v1/Systems/1", "bastion.example.com")


def test_open_returns_local_url(forwarder_class):
    """Test opening forwards to the BMC and rewrites the URL to the local port."""
    tunnel = SSHTunnel(
        "https://bmc.example.com:8443/redfish/v1/Systems/1",
        "bastion.example.com",
        jumphost_username="admin",
        ssh_key_path="/home/user/.ssh/id_rsa",
    )

    local_url = tunnel.open()

    assert local_url == "https://127.0.0.1:54321/redfish/v1/Systems/1"
    forwarder_class.return_value.start.assert_called_once()
    kwargs = forwarder_class.call_args.kwargs
    assert kwargs["ssh_address_or_host"] == ("bastion.example.com", 22)
    assert kwargs["remote_bind_address"] == ("bmc.example.com", 8443)
    assert kwargs["ssh_username"] == "admin"
    assert kwargs["ssh_pkey"] == "/home/user/.ssh/id_rsa"
    assert "ssh_password" not in kwargs


def test_password_used_without_key(forwarder_class):
    """Test a password is only passed when no key is configured."""
    SSHTunnel(URL, "bastion.example.com", ssh_password="secretpass").open()

    kwargs = forwarder_class.call_args.kwargs
    assert kwargs["ssh_password"] == "secretpass"
    assert "ssh_pkey" not in kwargs


def test_agent_keys_by_default(forwarder_class):
    """Test no credentials are passed when neither key nor password is set."""
    SSHTunnel(URL, "bastion.example.com").open()

    kwargs = forwarder_class.call_args.kwargs
    assert "ssh_pkey" not in kwargs
    assert "ssh_password" not in kwargs


def test_context_manager_closes(forwarder_class):
    """Test the context manager yields the local URL and stops forwarding."""
    with SSHTunnel(URL, "bastion.example.com") as local_url:
        assert local_url == "https://127.0.0.1:54321/redfish/v1/Systems/1"

    forwarder_class.return_value.stop.assert_called_once()


def test_close_without_open(forwarder_class):
    """Test closing an unopened tunnel does nothing."""
    SSHTunnel(URL, "bastion.example.com").close()

    forwarder_class.assert_not_called()
