"""
WSGI config for the deliverydesk project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'deliverydesk.config.settings')

application = get_wsgi_application()
