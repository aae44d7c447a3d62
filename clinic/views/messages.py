from rest_framework.decorators import api_view

from clinic.permissions import allow_roles
from clinic.responses import pagination, success_response
from clinic.serializers.message import MessageCreateSerializer, MessageListQuerySerializer, message_data
from clinic.services.messaging import MessagingGate


@api_view(['POST'])
@allow_roles()
def send_message(request):
    s = MessageCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = dict(s.validated_data)
    msg = MessagingGate().send(request.user, vd.pop('consultation_id'), vd.pop('content'), **vd)
    return success_response(message_data(msg), 'Message sent successfully', status=201)


@api_view(['GET'])
@allow_roles()
def consultation_messages(request, pk: int):
    q = MessageListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page, limit = q.validated_data['page'], q.validated_data['limit']
    items, total = MessagingGate().list_messages(request.user, pk, page=page, limit=limit)
    return success_response({
        'messages': [message_data(m) for m in items],
        'pagination': pagination(page, limit, total),
    }, 'Messages retrieved successfully')


@api_view(['GET'])
@allow_roles()
def unread_count(request):
    return success_response({'unreadCount': MessagingGate.unread_count(request.user)},
                            'Unread count retrieved successfully')


@api_view(['PUT'])
@allow_roles()
def mark_read(request, pk: int):
    updated = MessagingGate().mark_read(request.user, pk)
    return success_response({'updated': updated}, 'Messages marked as read')


@api_view(['DELETE'])
@allow_roles()
def delete_message(request, pk: int):
    MessagingGate().delete(request.user, pk)
    return success_response(None, 'Message deleted successfully')
