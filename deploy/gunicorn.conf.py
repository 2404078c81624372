"""Gunicorn configuration for the Skylab platform API.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

Handlers are stateless and I/O-bound (Supabase and Gemini round trips), so
one async worker per core is enough.
"""

import multiprocessing
import os

# ─── Server socket ──────────────────────────────────────────────

bind = os.getenv("BIND", "0.0.0.0:5000")
backlog = 2048

# ─── Worker processes ───────────────────────────────────────────

workers = int(os.getenv("WORKERS", min(multiprocessing.cpu_count(), 4)))
worker_class = "uvicorn.workers.UvicornWorker"

# ─── Timeouts ───────────────────────────────────────────────────
#
# Gemini calls dominate latency (GEMINI_TIMEOUT defaults to 60s).

timeout = 90
graceful_timeout = 30
keepalive = 5

# ─── Worker recycling ──────────────────────────────────────────

max_requests = 5000
max_requests_jitter = 500

# ─── Logging ────────────────────────────────────────────────────

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" %(D)sμs'
)

# ─── Process naming ─────────────────────────────────────────────

proc_name = "skylab-platform-api"

# ─── Server hooks ───────────────────────────────────────────────


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info(
        "Starting Skylab platform API — workers=%d, timeout=%ds, bind=%s",
        workers,
        timeout,
        bind,
    )


def worker_exit(server, worker):
    """Called when a worker has been killed or exited."""
    server.log.info("Worker exit (pid: %s)", worker.pid)
