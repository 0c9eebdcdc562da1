"""
WSGI entry point for production deployment
Run with: gunicorn "wsgi:application"
"""
import os

from clinic_admission import create_app

# FLASK_ENV picks the config class; production refuses a default SECRET_KEY
application = app = create_app(os.getenv('FLASK_ENV', 'production'))
