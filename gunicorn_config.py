"""
Gunicorn configuration for the compensation admin API.

The API only serves reads, settings edits and event intake; settlement runs
in the Celery worker, so request timeouts stay short.
All settings can be overridden via environment variables.
"""
import multiprocessing
import os

# Server socket
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.environ.get("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "sync"
# POST /api/settlement/run-daily/ settles synchronously; allow it time on large trees
timeout = int(os.environ.get("GUNICORN_TIMEOUT", 120))
keepalive = 5

capture_output = True
enable_stdio_inheritance = False

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 50
preload_app = False
graceful_timeout = 30

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("GUNICORN_LOG_LEVEL", "info")
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

proc_name = "ev_compensation"

# Use shared memory for worker heartbeat files when available (Linux only)
if os.path.exists("/dev/shm"):
    worker_tmp_dir = "/dev/shm"
else:
    worker_tmp_dir = None


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting EV compensation Gunicorn server")


def when_ready(server):
    """Called just after the server is started."""
    server.log.info("EV compensation Gunicorn server is ready. Spawning workers")


def worker_abort(worker):
    """Called when a worker times out or is killed."""
    import traceback
    worker.log.warning(f"Worker {worker.pid} aborted (timeout or killed)")
    worker.log.warning(f"Worker abort traceback:\n{traceback.format_exc()}")


def on_exit(server):
    """Called just before exiting Gunicorn."""
    server.log.info("Shutting down EV compensation Gunicorn server")
