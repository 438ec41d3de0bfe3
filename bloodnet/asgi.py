"""
ASGI entrypoint. The alert stream needs an async server:

    uvicorn bloodnet.asgi:application
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bloodnet.settings')

application = get_asgi_application()
