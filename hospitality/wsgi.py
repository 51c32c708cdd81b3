"""WSGI config for the hospitality booking engine."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hospitality.settings')

application = get_wsgi_application()
