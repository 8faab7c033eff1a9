"""Reach a BMC's Redfish service through an SSH jumphost."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from sshtunnel import SSHTunnelForwarder

from .errors import MissingConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


class SSHTunnel:
    """
    Forwards a local port to the BMC addressed by a management URL.

    ``open()`` returns the management URL rewritten to the local end of the
    tunnel; requests sent there must carry ``headers`` so the BMC still sees
    its own host name.
    """

    def __init__(
        self,
        redfish_url: str,
        jumphost: str,
        jumphost_port: int = 22,
        jumphost_username: Optional[str] = None,
        ssh_key_path: Optional[str] = None,
        ssh_password: Optional[str] = None,
    ) -> None:
        """
        Args:
            redfish_url: Management URL of the node behind the jumphost
            jumphost: Jumphost hostname (e.g., bastion.example.com)
            jumphost_port: SSH port on jumphost (default: 22)
            jumphost_username: SSH username for jumphost
            ssh_key_path: Path to SSH private key
            ssh_password: SSH password, used only without a key
        """
        parsed = urlsplit(redfish_url)
        if not parsed.hostname:
            raise MissingConfigurationError("Redfish URL")

        self.redfish_url = redfish_url
        self.bmc_address = (parsed.hostname, parsed.port or DEFAULT_PORTS.get(parsed.scheme, 443))
        # netloc keeps an explicit port, which the Host header must repeat
        self.host_header = parsed.netloc.rsplit("@", 1)[-1]
        self.jumphost = jumphost
        self.jumphost_port = jumphost_port
        self.jumphost_username = jumphost_username
        self.ssh_key_path = ssh_key_path
        self.ssh_password = ssh_password
        self.forwarder: Optional[SSHTunnelForwarder] = None

    @property
    def headers(self) -> Dict[str, str]:
        return {"Host": self.host_header}

    def _credentials(self) -> Dict[str, Any]:
        if self.ssh_key_path:
            return {"ssh_pkey": self.ssh_key_path}
        if self.ssh_password:
            return {"ssh_password": self.ssh_password}
        # paramiko falls back to the SSH agent and ~/.ssh keys
        return {}

    def open(self) -> str:
        """
        Start forwarding and return the management URL to use instead.

        Example:
            https://10.0.0.1/redfish/v1/Systems/1 -> https://127.0.0.1:54321/redfish/v1/Systems/1
        """
        self.forwarder = SSHTunnelForwarder(
            ssh_address_or_host=(self.jumphost, self.jumphost_port),
            ssh_username=self.jumphost_username,
            remote_bind_address=self.bmc_address,
            local_bind_address=("127.0.0.1", 0),
            **self._credentials(),
        )
        self.forwarder.start()

        local_port = self.forwarder.local_bind_port
        logger.info(
            f"Tunneling {self.host_header} through {self.jumphost} on localhost:{local_port}"
        )

        parsed = urlsplit(self.redfish_url)
        return urlunsplit(
            (parsed.scheme, f"127.0.0.1:{local_port}", parsed.path, parsed.query, parsed.fragment)
        )

    def close(self) -> None:
        if self.forwarder:
            self.forwarder.stop()
            self.forwarder = None
            logger.info(f"Tunnel to {self.host_header} closed")

    def __enter__(self) -> str:
        return self.open()

    def __exit__(self, *args: Any) -> None:
        self.close()
