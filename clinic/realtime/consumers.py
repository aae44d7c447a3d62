import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from rest_framework.exceptions import APIException

from clinic.models import Consultation, Message
from clinic.realtime.relay import ConsultationRelay, get_relay
from clinic.services.messaging import MessagingGate

logger = logging.getLogger(__name__)

CLOSE_UNAUTHENTICATED = 4001
CLOSE_FORBIDDEN = 4003
CLOSE_NOT_FOUND = 4004


async def _ws_error(ws, code: str, message: str):
    """Error frame sent back to the client; the connection stays open."""
    await ws.send(json.dumps({"type": "error", "code": code, "message": message}))


@database_sync_to_async
def _load_consultation(consultation_id: int):
    return Consultation.objects.filter(pk=consultation_id).first()


@database_sync_to_async
def _send_message(user, consultation_id: int, content: str, message_type: str, file_url=None, file_name=None):
    return MessagingGate(get_relay()).send(user, consultation_id, content, message_type=message_type,
                                           file_url=file_url, file_name=file_name).id


class ConsultationChatConsumer(AsyncWebsocketConsumer):
    """Room of one consultation; only its patient and doctor may join.

    Client frames: ``{"type": "send", "content", "messageType"?, "fileUrl"?, "fileName"?}`` and
    ``{"type": "typing", "isTyping"}``.  Events published through the
    relay arrive as ``{"type": "<event>", "data": {...}}``.
    """

    async def connect(self):
        self.consultation_id = int(self.scope["url_route"]["kwargs"]["consultation_id"])
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        consultation = await _load_consultation(self.consultation_id)
        if consultation is None:
            await self.close(code=CLOSE_NOT_FOUND)
            return
        if not consultation.has_participant(user):
            await self.close(code=CLOSE_FORBIDDEN)
            return

        self.user = user
        self.group_name = ConsultationRelay.group_name(self.consultation_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, "invalid_json", "Frame is not valid JSON")
            return
        if not isinstance(data, dict):
            await _ws_error(self, "invalid_payload", "Frame must be a JSON object")
            return

        kind = data.get("type")
        if kind == "send":
            await self._handle_send(data)
        elif kind == "typing":
            await self.channel_layer.group_send(self.group_name, {
                "type": "user.typing",
                "payload": {
                    "consultationId": self.consultation_id,
                    "userId": self.user.id,
                    "fullName": self.user.full_name,
                    "isTyping": bool(data.get("isTyping", True)),
                },
            })
        else:
            await _ws_error(self, "unsupported_type", "Unsupported frame type")

    async def _handle_send(self, data):
        content = data.get("content")
        if not isinstance(content, str):
            await _ws_error(self, "validation_failed", "Message content is required")
            return
        message_type = data.get("messageType") or Message.Type.TEXT
        try:
            message_id = await _send_message(self.user, self.consultation_id, content, message_type,
                                             data.get("fileUrl"), data.get("fileName"))
        except APIException as exc:
            await _ws_error(self, exc.default_code, str(exc.detail))
            return
        await self.send(json.dumps({"type": "ack", "messageId": message_id}))

    async def _forward(self, event):
        await self.send(json.dumps({"type": event["type"], "data": event.get("payload", {})}))

    # group_send handlers; "message.new" is dispatched to message_new
    async def message_new(self, event):
        await self._forward(event)

    async def message_deleted(self, event):
        await self._forward(event)

    async def consultation_status(self, event):
        await self._forward(event)

    async def user_typing(self, event):
        if event.get("payload", {}).get("userId") == self.user.id:
            return
        await self._forward(event)
