"""
WSGI entry point for the salon scheduling backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "salon_system.settings")

application = get_wsgi_application()
