from django.apps import AppConfig


class BucketKVConfig(AppConfig):
    name = "bucketkv"
    verbose_name = "Bucketed key/value store"
    default_auto_field = "django.db.models.BigAutoField"
