"""
Messaging gate.

A message may only be written into a consultation that is ACTIVE and
whose payment is PAID.  The consultation row is locked while the guard is
evaluated, so a concurrent status change cannot slip a message past it.
"""
import logging
from typing import Optional

import bleach
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q

from clinic.exceptions import NotFound, PaymentRequired, PreconditionFailed, ValidationFailed
from clinic.models import Consultation, Message, Payment
from clinic.realtime.relay import ConsultationRelay, get_relay
from clinic.serializers.message import message_data
from clinic.services.audit import log_action
from clinic.services.consultations import participant_consultation

User = get_user_model()
logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 5000


def clean_content(content: Optional[str]) -> str:
    content = bleach.clean((content or '').strip(), tags=[], strip=True)
    if not content:
        raise ValidationFailed('Message content is required')
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationFailed(f'Message content must be at most {MAX_CONTENT_LENGTH} characters')
    return content


class MessagingGate:
    """Send, list, read and delete consultation messages."""

    def __init__(self, relay: Optional[ConsultationRelay] = None):
        self.relay = relay or get_relay()

    def send(self, sender: User, consultation_id: int, content: str, *,
             message_type: str = Message.Type.TEXT, file_url: Optional[str] = None,
             file_name: Optional[str] = None) -> Message:
        content = clean_content(content)
        if message_type not in Message.Type.values:
            raise ValidationFailed('Invalid message type')
        if message_type != Message.Type.TEXT and not file_url:
            raise ValidationFailed('fileUrl is required for file messages')

        with transaction.atomic():
            consultation = (
                Consultation.objects.select_for_update()
                .filter(pk=consultation_id)
                .filter(Q(patient=sender) | Q(doctor=sender))
                .first()
            )
            if consultation is None:
                raise NotFound('Consultation not found')
            if consultation.status != Consultation.Status.ACTIVE:
                raise PreconditionFailed('Consultation is not active')
            payment_status = (
                Payment.objects.filter(consultation_id=consultation.id)
                .values_list('status', flat=True).first()
            )
            if payment_status != Payment.Status.PAID:
                raise PaymentRequired('Payment required before sending messages')

            message = Message.objects.create(
                consultation=consultation,
                sender=sender,
                content=content,
                message_type=message_type,
                file_url=file_url or None,
                file_name=file_name or None,
            )

        self.relay.broadcast(consultation.id, 'message.new', message_data(message))
        return message

    def list_messages(self, user: User, consultation_id: int, *, page: int = 1, limit: int = 50):
        """Page ``page`` counted from the newest message, returned oldest first.

        Messages from the other participant are marked read as a side effect.
        """
        consultation = participant_consultation(user, consultation_id)
        qs = Message.objects.filter(consultation=consultation)
        total = qs.count()
        start = (page - 1) * limit
        newest_first = list(qs.select_related('sender').order_by('-created_at', '-id')[start:start + limit])
        self._mark_others_read(user, consultation)
        return list(reversed(newest_first)), total

    def mark_read(self, user: User, consultation_id: int) -> int:
        consultation = participant_consultation(user, consultation_id)
        return self._mark_others_read(user, consultation)

    @staticmethod
    def _mark_others_read(user: User, consultation: Consultation) -> int:
        return (
            Message.objects.filter(consultation=consultation, is_read=False)
            .exclude(sender=user)
            .update(is_read=True)
        )

    @staticmethod
    def unread_count(user: User) -> int:
        return (
            Message.objects.filter(is_read=False)
            .filter(Q(consultation__patient=user) | Q(consultation__doctor=user))
            .exclude(sender=user)
            .count()
        )

    def delete(self, user: User, message_id: int) -> None:
        message = Message.objects.filter(pk=message_id, sender=user).first()
        if message is None:
            raise NotFound('Message not found')
        consultation_id = message.consultation_id
        message.delete()
        log_action(user=user, action='message_delete', object_type='message', object_id=message_id,
                   detail={'consultationId': consultation_id})
        self.relay.broadcast(consultation_id, 'message.deleted', {
            'messageId': message_id,
            'consultationId': consultation_id,
        })
