"""
Gunicorn config: bind to 0.0.0.0 and PORT for Railway/Render.
WebSocket connections hold a thread each, so the worker is threaded.
"""
import os

bind = "0.0.0.0:{}".format(os.environ.get("PORT", "8080"))
wsgi_app = "wsgi:app"
workers = 1
worker_class = "gthread"
threads = int(os.environ.get("GUNICORN_THREADS", "16"))
timeout = 120
