import os

# Bind & workers
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
threads = 1
# Password hashing is CPU-bound; keep request timeouts generous but bounded
timeout = int(os.getenv("GUNICORN_TIMEOUT", "30"))
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by Docker)
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Trust proxy headers (ProxyFix handles X-Forwarded-* inside the app)
forwarded_allow_ips = "*"
proxy_protocol = False

wsgi_app = "wsgi:app"
