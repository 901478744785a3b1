"""
Transport interface for the telemetry link.

A transport owns one connection to the sensor gateway. It knows nothing
about reconnection, parsing or subscribers.
"""
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


class TelemetryTransport(ABC):
    """Interface for a streaming connection to the sensor gateway."""

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the connection.

        Raises:
            LinkError: If the gateway cannot be reached
        """
        pass

    @abstractmethod
    def messages(self) -> AsyncIterator[Any]:
        """
        Iterate raw payloads until the connection closes.

        Ends normally when the connection is closed, raises LinkError
        when it drops.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        pass

    @property
    def description(self) -> str:
        return self.__class__.__name__
