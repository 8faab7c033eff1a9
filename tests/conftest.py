"""Shared fixtures: an in-memory Redfish service."""

import copy
import json

import pytest
import requests

from redfish_oob.api import RedfishAPI


MANAGER_ID = "BMC1"


def http_error(status_code, body=None):
    """Build a requests.HTTPError carrying a real response."""
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode() if body is not None else b"not json"
    return requests.HTTPError(f"{status_code} Error", response=response)


def default_media():
    return {
        "Floppy1": {
            "Id": "Floppy1",
            "Name": "Virtual Floppy",
            "MediaTypes": ["Floppy", "USBStick"],
            "Inserted": False,
            "Image": None,
        },
        "CD1": {
            "Id": "CD1",
            "Name": "Virtual CD",
            "MediaTypes": ["CD", "DVD"],
            "Inserted": False,
            "Image": None,
        },
    }


class FakeRedfishAPI(RedfishAPI):
    """
    Redfish service kept in memory.

    Power and eject transitions take ``power_lag``/``eject_lag`` extra
    queries to show up, like a real controller catching up.
    """

    def __init__(
        self,
        node_id="1234",
        power_state="On",
        media=None,
        allowable=None,
        power_lag=0,
        eject_lag=0,
    ):
        self.node_id = node_id
        self.power_state = power_state
        self.media = media if media is not None else default_media()
        self.allowable = allowable if allowable is not None else ["None", "Pxe", "Cd", "Hdd"]
        self.boot_target = "None"
        self.power_lag = power_lag
        self.eject_lag = eject_lag
        self.calls = []
        self.failures = {}
        self.reset_failures = {}
        self.closed = False
        self._pending_power = None
        self._pending_eject = {}

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]

    def get_manager_virtual_media(self, manager_id, media_id):
        self._record("get_manager_virtual_media", manager_id, media_id)
        pending = self._pending_eject.get(media_id)
        if pending is not None:
            if pending <= 0:
                self.media[media_id].update(Inserted=False, Image=None)
                del self._pending_eject[media_id]
            else:
                self._pending_eject[media_id] = pending - 1
        return copy.deepcopy(self.media[media_id]), None

    def list_manager_virtual_media(self, manager_id):
        self._record("list_manager_virtual_media", manager_id)
        members = [
            {"@odata.id": f"/redfish/v1/Managers/{manager_id}/VirtualMedia/{media_id}"}
            for media_id in self.media
        ]
        return {"Members": members}, None

    def eject_virtual_media(self, manager_id, media_id, body):
        self._record("eject_virtual_media", manager_id, media_id)
        if self.eject_lag:
            self._pending_eject[media_id] = self.eject_lag
        else:
            self.media[media_id].update(Inserted=False, Image=None)
        return {}, None

    def insert_virtual_media(self, manager_id, media_id, body):
        self._record("insert_virtual_media", manager_id, media_id, body["Image"])
        self.media[media_id].update(Inserted=body["Inserted"], Image=body["Image"])
        return {}, None

    def get_system(self, system_id):
        if self._pending_power is not None:
            target, remaining = self._pending_power
            if remaining <= 0:
                self.power_state = target
                self._pending_power = None
            else:
                self._pending_power = (target, remaining - 1)
        self._record("get_system", system_id, self.power_state)
        system = {
            "Id": system_id,
            "PowerState": self.power_state,
            "Links": {
                "ManagedBy": [{"@odata.id": f"/redfish/v1/Managers/{MANAGER_ID}"}],
            },
            "Boot": {
                "BootSourceOverrideTarget": self.boot_target,
                "BootSourceOverrideTarget@Redfish.AllowableValues": list(self.allowable),
            },
        }
        return system, None

    def set_system(self, system_id, body):
        self._record("set_system", system_id, body)
        self.boot_target = body["Boot"]["BootSourceOverrideTarget"]
        return {}, None

    def reset_system(self, system_id, body):
        reset_type = body["ResetType"]
        self._record("reset_system", system_id, reset_type)
        if reset_type in self.reset_failures:
            raise self.reset_failures[reset_type]

        target = "Off" if reset_type == "ForceOff" else "On"
        if self.power_lag:
            self.power_state = "PoweringOff" if target == "Off" else "PoweringOn"
            self._pending_power = (target, self.power_lag)
        else:
            self.power_state = target
        return {}, None

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def no_poll_delay(monkeypatch):
    """Poll without sleeping."""
    monkeypatch.setattr("redfish_oob.client.SYSTEM_REBOOT_DELAY", 0)
    monkeypatch.setattr("redfish_oob.client.VIRTUAL_MEDIA_EJECT_DELAY", 0)


@pytest.fixture
def fake_api():
    return FakeRedfishAPI()
