"""
WSGI config for Artisashop project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Artisashop.settings')

application = get_wsgi_application()
