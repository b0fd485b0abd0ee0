from django.db import models


class SystemSetting(models.Model):
    """
    Simple key/value settings store, editable from the admin at runtime.
    Keys read by the application:
      - SLOT_INTERVAL_MINUTES (e.g., '30')
      - PUBLIC_HOLIDAY_COUNTRY (e.g., 'PH')
    """
    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=200)

    def __str__(self):
        return f"{self.key}={self.value}"

    @classmethod
    def get_value(cls, key: str, default=None):
        row = cls.objects.filter(key=key).first()
        if row is None:
            return default
        return row.value
