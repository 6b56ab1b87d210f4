import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "origin-proxy")

BACKEND_URL = os.environ.get("BACKEND_URL", "")
PUBLIC_URL = os.environ.get("PUBLIC_URL", "").rstrip("/")  # Public-facing URL for rewrites
PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))  # 5 minutes default
STRIP_SERVER_IDENTITY_HEADERS = (
    os.environ.get("STRIP_SERVER_IDENTITY_HEADERS", "true").lower() == "true"
)
STRIP_COOKIE_DOMAIN = os.environ.get("STRIP_COOKIE_DOMAIN", "false").lower() == "true"

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
