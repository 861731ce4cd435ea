"""
Gunicorn configuration for Ledgerly production deployment.

Uses Uvicorn workers for async ASGI support.

Each worker holds its own in-memory rate limiter; set
RATE_LIMIT_BACKEND=redis to share limits across workers and hosts.
"""

import multiprocessing
import os

# ─── Server Socket ───────────────────────────────────────────
bind = f"0.0.0.0:{os.getenv('PORT', os.getenv('APP_PORT', '8000'))}"

# ─── Worker Processes ────────────────────────────────────────
worker_class = "uvicorn.workers.UvicornWorker"

# Workers = (2 × CPU cores) + 1, capped by WEB_CONCURRENCY
workers = min(multiprocessing.cpu_count() * 2 + 1, int(os.getenv("WEB_CONCURRENCY", "4")))

# Concurrency comes from asyncio, not threads
threads = 1

# ─── Timeouts ────────────────────────────────────────────────
# Stripe calls are the slowest path; they finish well inside this
timeout = int(os.getenv("GUNICORN_TIMEOUT", "30"))
graceful_timeout = 30
keepalive = 5

# ─── Worker Lifecycle ────────────────────────────────────────
max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", "1000"))
max_requests_jitter = 50

# Async engines don't survive a fork
preload_app = False

# ─── Logging ─────────────────────────────────────────────────
# LoggingMiddleware emits the per-request line; gunicorn's access log stays off
accesslog = None
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# ─── Server Mechanics ────────────────────────────────────────
# Trust proxy headers (X-Forwarded-For) from the load balancer
forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "*")
reuse_port = True
