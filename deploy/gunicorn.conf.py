"""
Gunicorn configuration for the prize portal API.

    gunicorn prize_portal.main:app -c deploy/gunicorn.conf.py
"""
import os
import multiprocessing

# Server socket
bind = os.environ.get("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
keepalive = 5

# Logging to stdout/stderr; the process supervisor collects it
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()

proc_name = "prize-portal"

daemon = False

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190
