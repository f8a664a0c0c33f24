from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'deliverydesk.core'

    def ready(self):
        """Import signals when app is ready"""
        import deliverydesk.core.cache_signals  # noqa: F401
