"""
WSGI config for the POS HQ backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'pos_hq.settings')

application = get_wsgi_application()
