"""Redfish client for out-of-band power and virtual media control."""

import logging
import threading
from typing import Any, Dict, Optional

import requests

from .api import RedfishAPI, RedfishHTTPAPI
from .errors import MissingConfigurationError, RedfishClientError, screened
from .media import VirtualMedia, get_manager_id, get_virtual_media_id, list_virtual_media
from .poll import poll_until
from .power import PowerState
from .transport import TransportConfig, build_transport, get_base_path, get_resource_id_from_url


logger = logging.getLogger(__name__)

# Seconds between power state queries while rebooting
SYSTEM_REBOOT_DELAY = 30

# Seconds between virtual media queries while ejecting
VIRTUAL_MEDIA_EJECT_DELAY = 2

RESET_TYPE_FORCE_OFF = "ForceOff"
RESET_TYPE_ON = "On"

BOOT_SOURCE_ALLOWABLE_VALUES = "BootSourceOverrideTarget@Redfish.AllowableValues"


class RedfishClient:
    """Client managing one bare-metal node through its Redfish service."""

    def __init__(
        self,
        node_id: str,
        api: RedfishAPI,
        config: Optional[TransportConfig] = None,
    ) -> None:
        """
        Initialize Redfish client.
        
        Args:
            node_id: System identifier of the managed node
            api: RedfishAPI implementation used for every request
            config: Transport configuration the API was built from
        """
        self.node_id = node_id
        self.api = api
        self.config = config

    def eject_virtual_media(
        self,
        retries: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """
        Eject every inserted virtual media device attached to the node.

        Ejecting when nothing is inserted is a no-op.

        Args:
            retries: Query budget for each eject to be confirmed
            cancel: Event aborting the wait when set

        Raises:
            OperationRetriesExceededError: If a device still reports inserted
            RedfishClientError: On API errors
        """
        with screened():
            manager_id = get_manager_id(self.api, self.node_id)
            media = list_virtual_media(self.api, manager_id)

        for vmedia in media:
            if not vmedia.inserted:
                continue

            logger.debug(f"'{vmedia.name}' has virtual media inserted. Attempting to eject.")
            with screened():
                self.api.eject_virtual_media(manager_id, vmedia.media_id, {})

            def query(media_id: str = vmedia.media_id) -> VirtualMedia:
                with screened():
                    resource, _ = self.api.get_manager_virtual_media(manager_id, media_id)
                return VirtualMedia.from_redfish(resource)

            poll_until(
                query,
                lambda state: not state.inserted,
                what=f"eject media {vmedia.media_id}",
                interval=VIRTUAL_MEDIA_EJECT_DELAY,
                retries=retries,
                cancel=cancel,
            )
            logger.debug(f"Successfully ejected virtual media '{vmedia.media_id}'.")

    def _reset(self, reset_type: str) -> None:
        with screened():
            self.api.reset_system(self.node_id, {"ResetType": reset_type})

    def _wait_for_power_state(
        self,
        desired: PowerState,
        what: str,
        retries: Optional[int],
        cancel: Optional[threading.Event],
    ) -> None:
        def query() -> PowerState:
            with screened():
                system, _ = self.api.get_system(self.node_id)
            return PowerState.from_redfish(system.get("PowerState"))

        poll_until(
            query,
            lambda state: state == desired,
            what=what,
            interval=SYSTEM_REBOOT_DELAY,
            retries=retries,
            cancel=cancel,
        )
        logger.debug(f"Node '{self.node_id}' reached power state '{desired.value}'.")

    def reboot_system(
        self,
        retries: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """
        Power cycle the node: force it off, wait for Off, power on, wait for On.

        Power-on is only issued once Off has been observed.

        Args:
            retries: Query budget for each power state transition
            cancel: Event aborting the wait when set

        Raises:
            OperationRetriesExceededError: Naming the phase that did not converge
            RedfishClientError: If a power command fails
        """
        logger.info(f"Rebooting node '{self.node_id}': powering off.")
        try:
            self._reset(RESET_TYPE_FORCE_OFF)
        except RedfishClientError:
            logger.debug(f"Failed to reboot node '{self.node_id}': shutdown failure.")
            raise

        self._wait_for_power_state(
            PowerState.OFF, f"power off system {self.node_id}", retries, cancel
        )

        logger.info(f"Rebooting node '{self.node_id}': powering on.")
        try:
            self._reset(RESET_TYPE_ON)
        except RedfishClientError:
            logger.debug(f"Failed to reboot node '{self.node_id}': startup failure.")
            raise

        self._wait_for_power_state(
            PowerState.ON, f"power on system {self.node_id}", retries, cancel
        )

    def set_boot_source_by_type(self) -> None:
        """
        Point the next boot at the node's CD/DVD virtual media device.

        Raises:
            RedfishClientError: If the system cannot be read or offers no
                boot source matching the media type
        """
        with screened():
            _, media_type = get_virtual_media_id(self.api, self.node_id)

        logger.debug(f"Setting boot device to '{media_type}'.")

        try:
            system, _ = self.api.get_system(self.node_id)
        except requests.RequestException as exc:
            raise RedfishClientError(
                f"get system [{self.node_id}] failed: {exc}"
            ) from exc

        allowable_values = system.get("Boot", {}).get(BOOT_SOURCE_ALLOWABLE_VALUES, [])
        for boot_source in allowable_values:
            if str(boot_source).casefold() == media_type.casefold():
                body: Dict[str, Any] = {"Boot": {"BootSourceOverrideTarget": boot_source}}
                with screened():
                    self.api.set_system(self.node_id, body)
                logger.debug("Successfully set boot device.")
                return

        raise RedfishClientError(
            f"failed to set system [{self.node_id}] boot source: "
            f"no allowable value matches {media_type}"
        )

    def set_virtual_media(
        self,
        image_path: str,
        retries: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """
        Insert an image into the node's CD/DVD virtual media device.

        All previously inserted media are ejected first. The image path must
        be reachable by the controller.

        Args:
            image_path: Image URL handed to the controller
            retries: Query budget for each eject to be confirmed
            cancel: Event aborting the wait when set
        """
        logger.info(f"Inserting virtual media '{image_path}'.")
        self.eject_virtual_media(retries=retries, cancel=cancel)

        with screened():
            media_id, _ = get_virtual_media_id(self.api, self.node_id)
            manager_id = get_manager_id(self.api, self.node_id)
            self.api.insert_virtual_media(
                manager_id, media_id, {"Image": image_path, "Inserted": True}
            )

        logger.debug("Successfully set virtual media.")

    def system_power_off(self) -> None:
        """Force the node off without waiting for it to converge."""
        self._reset(RESET_TYPE_FORCE_OFF)

    def system_power_on(self) -> None:
        """Power the node on without waiting for it to converge."""
        self._reset(RESET_TYPE_ON)

    def system_power_status(self) -> PowerState:
        """Return the node's power state; unrecognized values map to UNKNOWN."""
        with screened():
            system, _ = self.api.get_system(self.node_id)
        return PowerState.from_redfish(system.get("PowerState"))

    def close(self) -> None:
        """Close the underlying transport."""
        self.api.close()

    def __enter__(self) -> "RedfishClient":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()


def new_client(
    redfish_url: str,
    insecure: bool = False,
    use_proxy: bool = True,
    username: str = "",
    password: str = "",
    headers: Optional[Dict[str, str]] = None,
) -> RedfishClient:
    """
    Build a client for the system addressed by a management URL.

    No request is made until an operation is called.
    
    Args:
        redfish_url: System URL (e.g., 'https://10.0.0.1/redfish/v1/Systems/1234')
        insecure: Skip TLS certificate verification
        use_proxy: Honour proxy settings from the environment
        username: Basic auth username (auth is only used with a password too)
        password: Basic auth password
        headers: Extra headers sent with every request
        
    Returns:
        RedfishClient for the node
        
    Raises:
        MissingConfigurationError: If the URL or its system ID is missing
    """
    if not redfish_url:
        raise MissingConfigurationError("Redfish URL")

    system_id = get_resource_id_from_url(redfish_url)
    if not system_id:
        raise MissingConfigurationError("management URL system ID")

    base_path = get_base_path(redfish_url)
    config = build_transport(
        base_path,
        insecure=insecure,
        use_proxy=use_proxy,
        username=username,
        password=password,
        headers=headers,
    )

    return RedfishClient(node_id=system_id, api=RedfishHTTPAPI(config), config=config)


def remote_direct(
    client: RedfishClient,
    image_path: str,
    retries: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> None:
    """
    Boot a node from an installer image: insert it, select it, power cycle.
    
    Args:
        client: Client for the node
        image_path: Image URL reachable by the controller
        retries: Query budget for each convergence poll
        cancel: Event aborting the wait when set
    """
    client.set_virtual_media(image_path, retries=retries, cancel=cancel)
    client.set_boot_source_by_type()
    client.reboot_system(retries=retries, cancel=cancel)
    logger.info(f"Node '{client.node_id}' is booting from '{image_path}'.")
