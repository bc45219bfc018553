# Gunicorn Configuration
# DeployWatch - Production Config

import os

# Workers
# Per-API write locks live in process memory: keep one worker and scale with threads
workers = 1
threads = int(os.getenv("DEPLOYWATCH_THREADS", "4"))
worker_class = "uvicorn.workers.UvicornWorker"
keepalive = 65  # Slightly higher than Nginx default

# Bind
bind = os.getenv("DEPLOYWATCH_BIND", "0.0.0.0:8000")
wsgi_app = "deploywatch.main:app"

# Logging
loglevel = "info"
accesslog = "-"  # Stdout
errorlog = "-"   # Stderr

# Timeouts
timeout = 120  # Fleet scans block until every check finishes

# Process Naming
proc_name = "deploywatch"

# Daemon
daemon = False
