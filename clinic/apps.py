from django.apps import AppConfig


class ClinicConfig(AppConfig):
    name = 'clinic'
    default_auto_field = 'django.db.models.BigAutoField'
    verbose_name = 'Telehealth clinic'

    relay = None

    def ready(self):
        from channels.layers import get_channel_layer

        from clinic.realtime.relay import ConsultationRelay

        self.relay = ConsultationRelay(get_channel_layer())
