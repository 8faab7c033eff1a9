"""Power state mapping and formatting."""

import enum
import json
from typing import Any, Optional


class PowerState(str, enum.Enum):
    """Power state of a managed system as reported by its controller."""

    ON = "On"
    OFF = "Off"
    POWERING_ON = "PoweringOn"
    POWERING_OFF = "PoweringOff"
    UNKNOWN = "Unknown"

    @classmethod
    def from_redfish(cls, value: Optional[Any]) -> "PowerState":
        """
        Map a controller-reported PowerState value onto the enumeration.

        Unrecognized or missing values map to UNKNOWN rather than erroring.
        """
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


def format_power_output(node_id: str, state: PowerState, format: str = "text") -> str:
    """
    Format a node's power state for display.
    
    Args:
        node_id: System identifier of the node
        state: Power state reported by the controller
        format: Output format ('text' or 'json')
        
    Returns:
        Formatted string output
    """
    if format.lower() == "json":
        return json.dumps({"node_id": node_id, "power_state": state.value}, indent=2)

    return f"System {node_id}: {state.value}"
