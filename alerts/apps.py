from django.apps import AppConfig


class AlertsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'alerts'
    verbose_name = 'Live Alerts'

    def ready(self):
        from .stream import AlertStream

        # Subscribers live only as long as this process
        self.stream = AlertStream.from_settings()
