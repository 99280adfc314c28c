"""Port reservation, conflict resolution and port health."""

from ._manager import (
    BACKOFF_FACTOR,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    PortManager,
)
from ._models import (
    DEFAULT_SERVICE_PORTS,
    ESSENTIAL_SERVICES,
    MAX_PORT,
    PortHealth,
    PortHealthSnapshot,
    PortReservation,
)

__all__ = [
    "BACKOFF_FACTOR",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_SERVICE_PORTS",
    "ESSENTIAL_SERVICES",
    "MAX_PORT",
    "PortHealth",
    "PortHealthSnapshot",
    "PortManager",
    "PortReservation",
]
