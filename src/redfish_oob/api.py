"""Redfish resource operations used for power and virtual media control."""

import abc
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from .transport import TransportConfig


logger = logging.getLogger(__name__)

Resource = Dict[str, Any]


class RedfishAPI(abc.ABC):
    """
    Resource operations the client depends on.

    Every method returns a ``(resource, response)`` tuple and raises
    ``requests.RequestException`` on failure; the exception's ``response``
    attribute carries the HTTP response when one was received.
    """

    @abc.abstractmethod
    def get_manager_virtual_media(
        self, manager_id: str, media_id: str
    ) -> Tuple[Resource, Optional[requests.Response]]:
        ...

    @abc.abstractmethod
    def list_manager_virtual_media(
        self, manager_id: str
    ) -> Tuple[Resource, Optional[requests.Response]]:
        ...

    @abc.abstractmethod
    def eject_virtual_media(
        self, manager_id: str, media_id: str, body: Resource
    ) -> Tuple[Resource, Optional[requests.Response]]:
        ...

    @abc.abstractmethod
    def insert_virtual_media(
        self, manager_id: str, media_id: str, body: Resource
    ) -> Tuple[Resource, Optional[requests.Response]]:
        ...

    @abc.abstractmethod
    def get_system(self, system_id: str) -> Tuple[Resource, Optional[requests.Response]]:
        ...

    @abc.abstractmethod
    def set_system(
        self, system_id: str, body: Resource
    ) -> Tuple[Resource, Optional[requests.Response]]:
        ...

    @abc.abstractmethod
    def reset_system(
        self, system_id: str, body: Resource
    ) -> Tuple[Resource, Optional[requests.Response]]:
        ...

    def close(self) -> None:
        """Release transport resources."""


class RedfishHTTPAPI(RedfishAPI):
    """RedfishAPI backed by a requests session."""

    def __init__(self, config: TransportConfig) -> None:
        """
        Initialize the binding.
        
        Args:
            config: Transport built by build_transport()
        """
        self.config = config
        self.session = config.session

    def _request(
        self, method: str, endpoint: str, payload: Optional[Resource] = None
    ) -> Tuple[Resource, requests.Response]:
        """
        Make a request to the Redfish API.
        
        Args:
            method: HTTP method (GET, POST, PATCH)
            endpoint: API endpoint path (e.g., '/Systems/1234')
            payload: Optional JSON body
            
        Returns:
            Tuple of (JSON response as dictionary, response)
            
        Raises:
            requests.RequestException: On connection or HTTP errors
        """
        url = f"{self.config.base_path}{endpoint}"
        logger.debug(f"{method} {url}")

        kwargs: Dict[str, Any] = {
            "timeout": self.config.timeout,
            "verify": self.config.verify,
            # requests fills environment proxies into this dict, so pass a copy
            "proxies": dict(self.config.proxies) if self.config.proxies is not None else None,
        }
        if payload is not None:
            kwargs["json"] = payload

        response = self.session.request(method, url, **kwargs)
        response.raise_for_status()

        # Actions commonly answer 204 No Content
        if not response.content:
            return {}, response

        try:
            resource = response.json()
        except ValueError as exc:
            raise requests.exceptions.InvalidJSONError(
                f"invalid JSON in response from {url}: {exc}", response=response
            ) from exc
        return resource, response

    def get_manager_virtual_media(self, manager_id, media_id):
        return self._request("GET", f"/Managers/{manager_id}/VirtualMedia/{media_id}")

    def list_manager_virtual_media(self, manager_id):
        return self._request("GET", f"/Managers/{manager_id}/VirtualMedia")

    def eject_virtual_media(self, manager_id, media_id, body):
        return self._request(
            "POST",
            f"/Managers/{manager_id}/VirtualMedia/{media_id}/Actions/VirtualMedia.EjectMedia",
            body,
        )

    def insert_virtual_media(self, manager_id, media_id, body):
        return self._request(
            "POST",
            f"/Managers/{manager_id}/VirtualMedia/{media_id}/Actions/VirtualMedia.InsertMedia",
            body,
        )

    def get_system(self, system_id):
        return self._request("GET", f"/Systems/{system_id}")

    def set_system(self, system_id, body):
        return self._request("PATCH", f"/Systems/{system_id}", body)

    def reset_system(self, system_id, body):
        return self._request(
            "POST", f"/Systems/{system_id}/Actions/ComputerSystem.Reset", body
        )

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
