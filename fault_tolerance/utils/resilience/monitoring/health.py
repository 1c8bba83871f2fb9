from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from fault_tolerance.utils.logger import get_logger

if TYPE_CHECKING:
    from fault_tolerance.enqueue.registry import ClientRegistry

logger = get_logger(__name__)


class ResilienceHealthChecker:
    """Collects basic health indicators for the decorated queue endpoints."""

    def __init__(
        self,
        registry: "ClientRegistry",
        queue_clients: Optional[Iterable[Any]] = None,
    ) -> None:
        self._registry = registry
        self._queue_clients = list(queue_clients or [])

    def circuits(self) -> Dict[str, Optional[str]]:
        """Breaker state per registry key; None when the breaker does not expose one."""
        states: Dict[str, Optional[str]] = {}
        for key, endpoint in self._registry.items():
            state = getattr(endpoint.breaker, "state", None)
            states[key] = getattr(state, "value", state)
        return states

    async def snapshot(self) -> Dict[str, Any]:
        """
        Build a point-in-time snapshot of resilience health.

        Includes breaker states and, for queue clients that can report it,
        the number of waiting messages.
        """
        data: Dict[str, Any] = {"circuits": self.circuits(), "queues": {}}
        for client in self._queue_clients:
            depth = getattr(client, "depth", None)
            if depth is None:
                continue
            try:
                data["queues"][client.name] = await depth()
            except Exception as exc:  # noqa: BLE001
                logger.error("queue_depth_error", client=client.name, error=str(exc))
                data["queues"][client.name] = None
        data["healthy"] = all(
            state in (None, "closed") for state in data["circuits"].values()
        )
        return data
