"""
WSGI config for the Tumble dashboard.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'tumble_core.settings')

application = get_wsgi_application()
