"""
WSGI entry point (Railway/Render/cPanel): gunicorn -c gunicorn_config.py wsgi:app
"""
import sys
import os

# Add project directory to path so 'app' can be imported
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app import create_app

app = create_app()
application = app
