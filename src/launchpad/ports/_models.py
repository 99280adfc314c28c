"""Data models for port management."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from launchpad.utils import get_timestamp

if TYPE_CHECKING:
    from launchpad.platform import ProcessRef

#: Well-known service ports checked by ``PortManager.health_snapshot()``.
DEFAULT_SERVICE_PORTS: dict[str, int] = {
    "backend": 5000,
    "frontend": 5173,
    "websocket": 5001,
    "database": 5432,
}

#: Services whose port being occupied makes the snapshot unhealthy.
ESSENTIAL_SERVICES: frozenset[str] = frozenset({"backend", "frontend"})

MAX_PORT = 65535


@dataclass(frozen=True, slots=True)
class PortReservation:
    """An in-memory claim on a port for one run.

    Attributes:
        service_name: Service holding the port (unique per run).
        port: Reserved port.
        reserved_at: ISO 8601 reservation time.
        requested_port: Port the service asked for; differs from ``port``
            when the reservation fell back.
    """

    service_name: str
    port: int
    requested_port: int
    reserved_at: str = field(default_factory=get_timestamp)

    @property
    def fell_back(self) -> bool:
        """Return True if the service did not get the port it asked for."""
        return self.port != self.requested_port


@dataclass(frozen=True, slots=True)
class PortHealth:
    """Availability of one well-known port.

    Attributes:
        port: Port checked.
        available: Whether a listener could be bound.
        owner: Process listening on the port, if it could be identified.
    """

    port: int
    available: bool
    owner: ProcessRef | None = None

    @property
    def status(self) -> Literal["ready", "occupied"]:
        """Return ``ready`` when the port can be bound, else ``occupied``."""
        return "ready" if self.available else "occupied"


@dataclass(frozen=True, slots=True)
class PortHealthSnapshot:
    """Health of every well-known port.

    Attributes:
        healthy: False when an essential service's port is occupied.
        services: Per-service port health.
    """

    healthy: bool
    services: dict[str, PortHealth]
