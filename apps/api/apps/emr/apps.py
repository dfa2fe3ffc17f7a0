from django.apps import AppConfig


class EmrConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.emr'

    def ready(self):
        import apps.emr.receivers  # noqa
