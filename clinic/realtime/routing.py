from django.urls import path

from clinic.realtime.consumers import ConsultationChatConsumer

websocket_urlpatterns = [
    path("ws/consultations/<int:consultation_id>/", ConsultationChatConsumer.as_asgi()),
]
