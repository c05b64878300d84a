"""Gunicorn configuration for the EduAI API.

Run with: gunicorn -c gunicorn.conf.py "eduai.web.app:create_app()"
"""

bind = "0.0.0.0:8000"
workers = 2  # Keep low for SQLite (avoids write contention)
timeout = 60
accesslog = "-"
errorlog = "-"
loglevel = "info"
