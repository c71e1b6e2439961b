# config/wsgi.py

import os

from django.core.wsgi import get_wsgi_application

# HTTP only; WebSockets need the ASGI entry point (config/asgi.py)
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.production')

application = get_wsgi_application()
