"""WebSocket routes pushing conformance results to connected viewers."""
import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from imaging_conformance.conformance.grouping import grouped_to_dict
from imaging_conformance.conformance.orchestrator import ConformanceCriteria
from imaging_conformance.conformance.service import get_conformance_service
from imaging_conformance.config.settings import get_settings
from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["WebSocket"])


def conformance_state(criteria: ConformanceCriteria) -> dict:
    """Current published outputs of ``criteria`` in wire form."""
    nonconformities = criteria.nonconformities.get()
    return {
        "validated": nonconformities is not None,
        "nonconformities": len(nonconformities or []),
        "max_targets": criteria.max_targets.get(),
        "groups": grouped_to_dict(criteria.grouped_nonconformities.get() or {}),
    }


def _timestamped(event: str, payload: dict) -> dict:
    return {
        "event": event,
        **payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class ConformanceNotifier:
    """Fans conformance results out to every connected viewer."""

    def __init__(self):
        self._clients: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Conformance viewer connected", total=len(self._clients))

    def disconnect(self, websocket: WebSocket):
        self._clients.discard(websocket)
        logger.info("Conformance viewer disconnected", total=len(self._clients))

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def publish(self, event: str, payload: dict) -> int:
        """Send one event to all viewers; returns how many received it."""
        message = _timestamped(event, payload)

        # Viewers may (dis)connect while a send is suspended
        dead: List[WebSocket] = []
        delivered = 0
        for ws in list(self._clients):
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping conformance viewer", notification=event, error=str(e))
                dead.append(ws)

        for ws in dead:
            self._clients.discard(ws)
        return delivered

    def attach(self, criteria: ConformanceCriteria) -> Callable[[], None]:
        """Publish a ``conformance_update`` after every run of ``criteria``.

        The grouped output is set last in a run, so the other outputs read
        here already belong to the same run. Returns the unsubscribe callable.
        """
        async def on_grouped(_grouped) -> None:
            await self.publish("conformance_update", conformance_state(criteria))

        return criteria.grouped_nonconformities.subscribe(on_grouped)


_notifier: Optional[ConformanceNotifier] = None


def get_conformance_notifier() -> ConformanceNotifier:
    """Get or create the global ConformanceNotifier."""
    global _notifier
    if _notifier is None:
        _notifier = ConformanceNotifier()
    return _notifier


@router.websocket("/ws/conformance")
async def websocket_conformance(websocket: WebSocket):
    """Sends the current conformance state, then an update after every run.

    A viewer may send ``"snapshot"`` to receive the current state again.
    """
    settings = get_settings()
    notifier = get_conformance_notifier()
    await notifier.connect(websocket)

    def snapshot() -> dict:
        service = get_conformance_service()
        return _timestamped("snapshot", {
            **conformance_state(service.criteria),
            "trial_criteria_type": service.trial_criteria_type.get().model_dump(),
        })

    try:
        await websocket.send_json(snapshot())

        while True:
            try:
                text = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=settings.ws_heartbeat_interval,
                )
            except asyncio.TimeoutError:
                await websocket.send_json(_timestamped("heartbeat", {}))
                continue

            if text.strip() == "snapshot":
                await websocket.send_json(snapshot())

    except WebSocketDisconnect:
        notifier.disconnect(websocket)
    except Exception as e:
        logger.error("Conformance WebSocket error", error=str(e))
        notifier.disconnect(websocket)
