from rest_framework import serializers

from clinic.models import Message
from clinic.serializers.common import PageQuerySerializer, iso


def message_data(m: Message):
    s = m.sender
    return {
        'id': m.id,
        'consultationId': m.consultation_id,
        'senderId': m.sender_id,
        'sender': {'id': s.id, 'fullName': s.full_name, 'photo': s.photo or None, 'role': s.role},
        'content': m.content,
        'messageType': m.message_type,
        'fileUrl': m.file_url,
        'fileName': m.file_name,
        'isRead': m.is_read,
        'createdAt': iso(m.created_at),
    }


class MessageCreateSerializer(serializers.Serializer):
    consultationId = serializers.IntegerField(source='consultation_id', min_value=1)
    content = serializers.CharField(max_length=5000)
    messageType = serializers.ChoiceField(source='message_type', choices=Message.Type.values,
                                          default=Message.Type.TEXT)
    fileUrl = serializers.CharField(source='file_url', max_length=512, required=False, allow_blank=True)
    fileName = serializers.CharField(source='file_name', max_length=255, required=False, allow_blank=True)


class MessageListQuerySerializer(PageQuerySerializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=50)
