# suitsync/config.py
import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./suitsync.db")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

# Lightspeed OAuth application
LS_CLIENT_ID = os.getenv("LS_CLIENT_ID", "")
LS_CLIENT_SECRET = os.getenv("LS_CLIENT_SECRET", "")
LS_REDIRECT_URI = os.getenv("LS_REDIRECT_URI", "http://localhost:3000/auth/callback")
LS_DOMAIN = os.getenv("LS_DOMAIN", "")
LS_AUTHORIZE_URL = os.getenv("LS_AUTHORIZE_URL", "https://secure.retail.lightspeed.app/connect")
LIGHTSPEED_SERVICE = "lightspeed"

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3001")

# app session tokens
SESSION_SECRET = os.getenv("SESSION_SECRET", "change_me_now")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
SESSION_TOKEN_EXPIRE_HOURS = int(os.getenv("SESSION_TOKEN_EXPIRE_HOURS", "12"))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "suitsync_session")
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")
OAUTH_TOKEN_KEY = os.getenv("OAUTH_TOKEN_KEY")  # base64 Fernet key, set in prod

# session lifecycle
SESSION_RETENTION_DAYS = int(os.getenv("SESSION_RETENTION_DAYS", "30"))

# installation mode
SUITSYNC_INSTALL_TYPE = os.getenv("SUITSYNC_INSTALL_TYPE", "server").lower()
SUITSYNC_SERVER_URL = os.getenv("SUITSYNC_SERVER_URL")
SUITSYNC_INSTANCE_ID = os.getenv("SUITSYNC_INSTANCE_ID")
SERVER_CHECK_INTERVAL_SECONDS = int(os.getenv("SERVER_CHECK_INTERVAL_SECONDS", "30"))
SERVER_TIMEOUT_SECONDS = int(os.getenv("SERVER_TIMEOUT_SECONDS", "10"))


def is_client_installation() -> bool:
    return SUITSYNC_INSTALL_TYPE == "client"


def is_server_installation() -> bool:
    return not is_client_installation()


def get_installation_info() -> dict:
    return {
        "type": SUITSYNC_INSTALL_TYPE,
        "instanceId": SUITSYNC_INSTANCE_ID or "unknown",
        "serverUrl": SUITSYNC_SERVER_URL,
        "isServer": is_server_installation(),
        "environment": ENVIRONMENT,
    }
