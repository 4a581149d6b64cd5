"""Connectivity monitor.

Holds the binary online/offline state, initialised from the platform
signal at startup. Transitions arrive as events (set_online); nothing is
polled. Each real transition is published as ConnectivityChanged.
Subscribers act on offline -> online; online -> offline is informational.
"""

import logging

from app.offline.events import ConnectivityChanged, EventBus

log = logging.getLogger(__name__)


class ConnectivityMonitor:
    def __init__(self, bus: EventBus, initial_online: bool):
        self._bus = bus
        self._online = bool(initial_online)

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> bool:
        """Feed a platform connectivity signal.

        Returns:
            True if the state changed (and an event was published).
        """
        online = bool(online)
        if online == self._online:
            return False
        previous, self._online = self._online, online
        log.info(f"Connectivity changed: {'online' if online else 'offline'}", extra={"online": online})
        self._bus.publish(ConnectivityChanged(online=online, previous=previous))
        return True
