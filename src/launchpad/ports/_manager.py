"""Port reservation and conflict resolution.

Reservations are best-effort and in-memory for the duration of one run: a
port can be taken by another program between the availability probe and the
moment a service binds it, so callers re-verify right before use.
"""

from __future__ import annotations

import socket
from typing import TYPE_CHECKING, Any, final

import anyio

from launchpad.exceptions import NoPortInRangeError, PortUnavailableError
from launchpad.runner import ExponentialBackoff
from launchpad.utils import get_default_logger

from ._models import (
    DEFAULT_SERVICE_PORTS,
    ESSENTIAL_SERVICES,
    MAX_PORT,
    PortHealth,
    PortHealthSnapshot,
    PortReservation,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from structlog.typing import FilteringBoundLogger

    from launchpad.platform import Platform

    type SleepFn = Callable[[float], Awaitable[None]]
    type FixCallback = Callable[[str], object]

DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_DELAY = 1.0
BACKOFF_FACTOR = 1.5
# Time for the OS to release a socket after its owner is killed
KILL_SETTLE_DELAY = 0.5


@final
class PortManager:
    """Reserves, verifies and releases ports for named services.

    Attributes:
        host: Address availability probes bind to.
        well_known: Service ports reported by ``health_snapshot()``.
    """

    __slots__ = (
        "_logger",
        "_on_fix",
        "_platform",
        "_reservations",
        "_sleep",
        "host",
        "kill_settle_delay",
        "well_known",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        platform: Platform,
        host: str = "0.0.0.0",  # noqa: S104
        well_known: Mapping[str, int] | None = None,
        kill_settle_delay: float = KILL_SETTLE_DELAY,
        on_fix: FixCallback | None = None,
        sleep: SleepFn | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the port manager.

        Args:
            platform: Platform adapter used to find and kill port owners.
            host: Address to bind when probing availability.
            well_known: Service ports for health snapshots.
            kill_settle_delay: Seconds to wait after killing a port owner.
            on_fix: Called with a message whenever a port is freed.
            sleep: Awaitable sleep used between attempts (defaults to anyio.sleep).
            logger: Logger for port events.
        """
        self.host = host
        self.well_known = dict(well_known if well_known is not None else DEFAULT_SERVICE_PORTS)
        self.kill_settle_delay = kill_settle_delay
        self._platform = platform
        self._on_fix = on_fix
        self._sleep: SleepFn = sleep or anyio.sleep
        self._logger: FilteringBoundLogger = logger or get_default_logger()
        self._reservations: dict[str, PortReservation] = {}

    # -------------------------------------------------------------------------
    # Probing
    # -------------------------------------------------------------------------

    def is_available(self, port: int) -> bool:
        """Return True if a TCP listener can be bound to ``port`` right now.

        Any bind error counts as unavailable.
        """
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind((self.host, port))
                sock.listen(1)
        except (OSError, OverflowError):
            return False
        return True

    @property
    def reserved_ports(self) -> frozenset[int]:
        """Return the ports reserved in this run."""
        return frozenset(r.port for r in self._reservations.values())

    def find_available(self, start: int, end: int = MAX_PORT) -> int:
        """Return the lowest bindable port in ``[start, end]`` not reserved in this run.

        Raises:
            NoPortInRangeError: If every port in the range is reserved or bound.
        """
        reserved = self.reserved_ports
        for port in range(max(start, 1), min(end, MAX_PORT) + 1):
            if port in reserved:
                continue
            if self.is_available(port):
                return port
        msg = f"No available port between {start} and {end}"
        raise NoPortInRangeError(msg, start=start, end=end)

    # -------------------------------------------------------------------------
    # Reservation
    # -------------------------------------------------------------------------

    def _holder(self, port: int) -> str | None:
        for reservation in self._reservations.values():
            if reservation.port == port:
                return reservation.service_name
        return None

    def _reserve(self, service_name: str, port: int, requested: int) -> int:
        reservation = PortReservation(
            service_name=service_name, port=port, requested_port=requested
        )
        self._reservations[service_name] = reservation
        self._logger.info(
            "port_reserved",
            service=service_name,
            port=port,
            requested_port=requested,
        )
        return port

    def _report_fix(self, message: str) -> None:
        self._logger.info("fix_applied", fix=message)
        if self._on_fix is not None:
            _ = self._on_fix(message)

    async def _free_port(self, port: int, *, force: bool) -> bool:
        owner = await self._platform.process_owning_port(port)
        if owner is None:
            self._logger.debug("port_owner_unknown", port=port)
            return False
        self._logger.warning(
            "port_owner_kill", port=port, pid=owner.pid, name=owner.name, force=force
        )
        if not await self._platform.kill_process(owner, force=force):
            return False
        await self._sleep(self.kill_settle_delay)
        return self.is_available(port)

    async def reserve_port(  # noqa: PLR0913
        self,
        service_name: str,
        preferred_port: int,
        *,
        auto_kill: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        fallback: bool = True,
    ) -> int:
        """Reserve a port for a service.

        Each attempt probes ``preferred_port``. With ``auto_kill``, the process
        owning it is killed (gracefully on the first attempt, forcibly after)
        and the port is re-checked at once; otherwise the manager waits
        ``retry_delay * 1.5 ** (attempt - 1)`` before the next attempt.

        Args:
            service_name: Service to reserve for; an existing reservation is
                released first.
            preferred_port: Port to try first.
            auto_kill: Kill the process occupying the port.
            max_retries: Attempts on the preferred port.
            retry_delay: Base delay between attempts in seconds.
            fallback: After exhausting attempts, reserve the next free port
                above ``preferred_port`` instead of failing.

        Returns:
            The reserved port.

        Raises:
            ValueError: If ``max_retries`` is less than 1.
            PortUnavailableError: If the port stayed unavailable and
                ``fallback`` is False.
            NoPortInRangeError: If falling back found no free port.
        """
        if max_retries < 1:
            msg = f"max_retries must be >= 1, got {max_retries}"
            raise ValueError(msg)

        self.release_port(service_name)
        holder = self._holder(preferred_port)

        if holder is None:
            backoff = ExponentialBackoff(base=retry_delay, multiplier=BACKOFF_FACTOR)
            for attempt in range(1, max_retries + 1):
                if self.is_available(preferred_port):
                    return self._reserve(service_name, preferred_port, preferred_port)

                if auto_kill and await self._free_port(preferred_port, force=attempt > 1):
                    self._report_fix(f"Port {preferred_port} freed")
                    return self._reserve(service_name, preferred_port, preferred_port)

                if attempt < max_retries:
                    delay = backoff.delay(attempt - 1)
                    self._logger.info(
                        "port_retry_scheduled",
                        port=preferred_port,
                        attempt=attempt,
                        max_retries=max_retries,
                        delay=delay,
                    )
                    await self._sleep(delay)
        else:
            self._logger.warning("port_held_by_service", port=preferred_port, holder=holder)

        if not fallback:
            msg = f"Port {preferred_port} for {service_name} is unavailable"
            raise PortUnavailableError(msg, service_name=service_name, port=preferred_port)

        port = self.find_available(preferred_port + 1)
        self._logger.warning(
            "port_fallback",
            service=service_name,
            requested_port=preferred_port,
            port=port,
        )
        return self._reserve(service_name, port, preferred_port)

    def release_port(self, service_name: str) -> None:
        """Drop a service's reservation; unknown names are ignored."""
        reservation = self._reservations.pop(service_name, None)
        if reservation is not None:
            self._logger.info("port_released", service=service_name, port=reservation.port)

    def reservations(self) -> dict[str, PortReservation]:
        """Return a copy of the current reservations keyed by service name."""
        return dict(self._reservations)

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def diagnostics(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Return a JSON-safe description of the manager's state."""
        return {
            "platform": self._platform.name,
            "host": self.host,
            "reservedPorts": sorted(self.reserved_ports),
            "reservations": {name: r.port for name, r in self._reservations.items()},
            "wellKnownPorts": dict(self.well_known),
        }

    async def health_snapshot(self) -> PortHealthSnapshot:
        """Check every well-known port and identify the owners of occupied ones."""
        services: dict[str, PortHealth] = {}
        for service, port in self.well_known.items():
            available = self.is_available(port)
            owner = None if available else await self._platform.process_owning_port(port)
            services[service] = PortHealth(port=port, available=available, owner=owner)

        healthy = all(
            health.available
            for service, health in services.items()
            if service in ESSENTIAL_SERVICES
        )
        return PortHealthSnapshot(healthy=healthy, services=services)
