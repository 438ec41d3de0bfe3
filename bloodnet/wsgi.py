"""WSGI entrypoint for management tooling; serve with bloodnet.asgi for live alerts."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bloodnet.settings')

application = get_wsgi_application()
