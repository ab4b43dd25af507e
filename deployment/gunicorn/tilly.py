# Tilly gunicorn configuration
# Run with: gunicorn -c deployment/gunicorn/tilly.py tilly.wsgi:app

# Server socket
bind = "127.0.0.1:8030"
backlog = 2048

# Worker processes (each request is independent; no shared state between workers)
workers = 2
worker_class = "sync"
timeout = 30
keepalive = 2

# Logging
accesslog = "/var/log/tilly/access.log"
errorlog = "/var/log/tilly/error.log"
loglevel = "info"

# Process naming
proc_name = "tilly"

# Server mechanics
daemon = False
pidfile = "/var/run/tilly/tilly.pid"
umask = 0
