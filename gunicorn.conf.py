"""
Gunicorn configuration for production deployment

    gunicorn scholarships.main:app -c gunicorn.conf.py
"""
import multiprocessing
import os

# Server socket
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
# Decisions are short DB transactions; (2 * CPU cores) + 1 unless overridden
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 100

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 100

# Timeouts
# A batch decision on a large cycle can outlast a normal request
timeout = int(os.getenv("GUNICORN_TIMEOUT", 120))
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "scholarships_api"

# Server mechanics
daemon = False  # Don't run as daemon (Docker handles this)
pidfile = None

# Logging
accesslog = "-"  # Log to stdout
errorlog = "-"   # Log to stderr
loglevel = os.getenv("LOG_LEVEL", "info").lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'


# Server hooks
def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting scholarships API")


def when_ready(server):
    server.log.info("Scholarships API is ready. Spawning %s workers", workers)


def worker_abort(worker):
    """Called when a worker is aborted (usually a timeout)."""
    worker.log.warning("Worker %s aborted", worker.pid)
