"""
Broadcast of persisted consultation events to connected WebSocket clients.

The relay has no authority over state: it is built once at start-up
(see ``ClinicConfig.ready``) and handed to the services that publish.
Delivery is fire-and-forget; a failing channel layer is logged and never
fails the operation that produced the event.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from asgiref.sync import async_to_sync

logger = logging.getLogger(__name__)


class ConsultationRelay:
    """Publish events to the ``consultation.<id>`` channel-layer group."""

    def __init__(self, channel_layer: Optional[Any]):
        self.channel_layer = channel_layer

    @staticmethod
    def group_name(consultation_id: int) -> str:
        return f"consultation.{consultation_id}"

    def broadcast(self, consultation_id: int, event: str, payload: dict) -> bool:
        """Send ``payload`` as event ``event`` (e.g. ``message.new``); return delivery success."""
        if self.channel_layer is None:
            return False
        try:
            async_to_sync(self.channel_layer.group_send)(
                self.group_name(consultation_id),
                {"type": event, "payload": payload},
            )
        except Exception:
            logger.warning("relay %s to consultation %s failed", event, consultation_id, exc_info=True)
            return False
        return True


class NullRelay(ConsultationRelay):
    """Relay used when no channel layer is configured."""

    def __init__(self):
        super().__init__(None)


def get_relay() -> ConsultationRelay:
    """Return the relay constructed by the clinic app at start-up."""
    from django.apps import apps

    relay = getattr(apps.get_app_config('clinic'), 'relay', None)
    return relay if relay is not None else NullRelay()
