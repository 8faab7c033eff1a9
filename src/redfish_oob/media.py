"""Virtual media resources and lookups."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .errors import RedfishClientError
from .transport import get_resource_id_from_url


logger = logging.getLogger(__name__)

# Media types that can carry a bootable installer image
BOOTABLE_MEDIA_TYPES = ("CD", "DVD")


@dataclass
class VirtualMedia:
    """A virtual media device exposed by a manager."""

    media_id: str
    name: str = ""
    inserted: bool = False
    media_types: List[str] = field(default_factory=list)
    image: str = ""

    @classmethod
    def from_redfish(cls, resource: Dict[str, Any]) -> "VirtualMedia":
        media_id = resource.get("Id") or get_resource_id_from_url(resource.get("@odata.id", ""))
        return cls(
            media_id=media_id,
            name=resource.get("Name") or "",
            inserted=bool(resource.get("Inserted")),
            media_types=list(resource.get("MediaTypes") or []),
            image=resource.get("Image") or "",
        )


def get_manager_id(api, node_id: str) -> str:
    """
    Resolve the manager responsible for a system.
    
    Args:
        api: RedfishAPI implementation
        node_id: System identifier
        
    Returns:
        Manager identifier taken from the system's Links.ManagedBy
        
    Raises:
        requests.RequestException: On API errors
        RedfishClientError: If the system lists no manager
    """
    system, _ = api.get_system(node_id)
    managed_by = system.get("Links", {}).get("ManagedBy", [])
    if not managed_by:
        raise RedfishClientError(f"system {node_id} does not list a manager")

    return get_resource_id_from_url(managed_by[0]["@odata.id"])


def list_virtual_media(api, manager_id: str) -> List[VirtualMedia]:
    """Fetch every virtual media member of a manager."""
    collection, _ = api.list_manager_virtual_media(manager_id)

    media = []
    for member in collection.get("Members", []):
        media_id = get_resource_id_from_url(member["@odata.id"])
        resource, _ = api.get_manager_virtual_media(manager_id, media_id)
        media.append(VirtualMedia.from_redfish(resource))

    return media


def get_virtual_media_id(api, node_id: str) -> Tuple[str, str]:
    """
    Find the virtual media device able to carry a boot image.

    Returns:
        Tuple of (media id, media type) for the first CD or DVD device

    Raises:
        RedfishClientError: If no compatible device exists
    """
    manager_id = get_manager_id(api, node_id)

    for vmedia in list_virtual_media(api, manager_id):
        for media_type in vmedia.media_types:
            if media_type in BOOTABLE_MEDIA_TYPES:
                logger.debug(f"Using virtual media '{vmedia.media_id}' of type {media_type}")
                return vmedia.media_id, media_type

    raise RedfishClientError(
        f"unable to find virtual media of type {' or '.join(BOOTABLE_MEDIA_TYPES)} "
        f"on manager {manager_id}"
    )
