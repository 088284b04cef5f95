"""
Gunicorn configuration for PawLedger.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Sync workers; balance writes are guarded by version checks, not process locks
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = 60
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'pawledger'

# Scheduler starts once in the preloaded master
preload_app = True

graceful_timeout = 30


def on_starting(server):
    server.log.info("Starting PawLedger server")


def on_exit(server):
    server.log.info("PawLedger server shutting down")
