"""Connectivity monitor: a push-based online/offline signal.

The status reflects what the local network interfaces report, never a
round trip to the completion endpoint. A device can look online and
still fail to reach Azure; that surfaces as ``TransportError`` instead.
"""

from __future__ import annotations

import logging
import socket
from pathlib import Path
from typing import Callable, Optional

from azure_chat.models.network import NetworkStatus

logger = logging.getLogger(__name__)

SYS_NET = Path("/sys/class/net")

StatusListener = Callable[[NetworkStatus], None]


def probe_platform() -> bool:
    """Best-effort check that some non-loopback interface is up.

    Uses ``/sys/class/net/*/operstate`` where the OS provides it and the
    interface list otherwise. Returns ``True`` when nothing can be learned.
    """
    if SYS_NET.is_dir():
        states = []
        for iface in SYS_NET.iterdir():
            if iface.name == "lo":
                continue
            try:
                states.append((iface / "operstate").read_text().strip())
            except OSError:
                continue
        if states:
            return any(state in ("up", "unknown") for state in states)
    try:
        names = [name for _, name in socket.if_nameindex()]
    except (AttributeError, OSError):
        return True
    return any(not name.startswith("lo") for name in names) if names else True


class ConnectivityMonitor:
    """Holds the current ``NetworkStatus`` and notifies subscribers on change.

    Platform adapters (the browser reporting through ``PUT /api/network``,
    or ``refresh()`` on the host) call ``set_online`` / ``set_offline`` /
    ``update_link_quality``; consumers read ``is_online`` or subscribe.
    """

    def __init__(
        self,
        status: Optional[NetworkStatus] = None,
        probe: Callable[[], bool] = probe_platform,
    ) -> None:
        self._probe = probe
        self._status = status if status is not None else NetworkStatus(is_online=probe())
        self._listeners: list[StatusListener] = []

    @property
    def status(self) -> NetworkStatus:
        return self._status

    @property
    def is_online(self) -> bool:
        return self._status.is_online

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_online(self) -> None:
        self._publish(self._status.model_copy(update={"is_online": True}))

    def set_offline(self) -> None:
        self._publish(self._status.model_copy(update={"is_online": False}))

    def update_link_quality(
        self,
        effective_type: Optional[str] = None,
        downlink: Optional[float] = None,
        rtt: Optional[int] = None,
    ) -> None:
        self._publish(
            self._status.model_copy(
                update={"effective_type": effective_type, "downlink": downlink, "rtt": rtt}
            )
        )

    def report(self, status: NetworkStatus) -> None:
        """Replace the whole status, as a front-end change event does."""
        self._publish(status)

    def refresh(self) -> NetworkStatus:
        """Re-probe the host interfaces and publish the result."""
        self._publish(self._status.model_copy(update={"is_online": self._probe()}))
        return self._status

    def _publish(self, status: NetworkStatus) -> None:
        if status == self._status:
            return
        if status.is_online != self._status.is_online:
            logger.info("Network is now %s", "online" if status.is_online else "offline")
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Network listener %r failed", listener)
