"""
Gunicorn configuration for production deployment.

Usage:
    gunicorn -c gunicorn.conf.py wsgi:app

Each worker builds its own registry and nonce per request, so sync and
threaded workers are both safe.
"""

import multiprocessing
import os

# --- Bind ---
bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8000')

# --- Workers ---
# 2 * CPU cores + 1 (gunicorn recommendation), capped for a page-rendering app.
workers = min(multiprocessing.cpu_count() * 2 + 1, 8)
worker_class = 'sync'

# --- Timeouts ---
timeout = 30
graceful_timeout = 10
keepalive = 2

# --- Worker Recycling ---
# Jitter keeps workers from restarting simultaneously.
max_requests = 1000
max_requests_jitter = 50

# --- Server Identity ---
server_software = ''

# --- Logging ---
accesslog = '-'
errorlog = '-'
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" %(L)s'
loglevel = os.environ.get('LOG_LEVEL', 'info')

# --- Process Naming ---
proc_name = 'defer-backend'

# --- Forwarded Headers ---
# request.is_secure (HSTS, CSP) depends on X-Forwarded-Proto from the proxy.
forwarded_allow_ips = os.environ.get('FORWARDED_ALLOW_IPS', '127.0.0.1')
