"""API state management.

Holds the ConfigService shared by every route handler.
"""

from dataclasses import dataclass, field
from threading import RLock
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from temporal_config.services.config_service import ConfigService


@dataclass
class ApiState:
    """Container for objects shared across requests."""

    service: "ConfigService | None" = None
    admin_role: str = "admin"
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)

    def reset(self) -> None:
        """Close the service (if any) and return to a blank state."""
        with self._lock:
            if self.service is not None:
                self.service.close()
            self.service = None
            self.admin_role = "admin"


# Global API state instance, accessed by the routes
api_state = ApiState()


def get_state() -> ApiState:
    """Get the global API state."""
    return api_state


def reset_state() -> None:
    """Reset the global API state.

    Useful for testing.
    """
    api_state.reset()
