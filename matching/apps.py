from django.apps import AppConfig


class MatchingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'matching'
    verbose_name = 'Donor Matching'

    def ready(self):
        from .cache import CacheService

        # One cache per process, owned by the app registry
        self.cache = CacheService.from_settings()
