"""Gunicorn configuration for the InternQuest functions service.

Secrets are read from /run/secrets by internquest.config.settings at app
creation; this file only checks that the mount is visible to workers.
"""
import os
from pathlib import Path

wsgi_app = "internquest.flask_app:create_app()"
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "540"))
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets")
    else:
        worker.log.info("No /run/secrets mount; using environment variables")
