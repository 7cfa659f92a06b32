import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file)
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./test.db")
    DB_AUTO_CREATE = bool(data.get("DB_AUTO_CREATE", False))
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Payment provider webhooks
    PAYMENT_PROVIDER = data.get("PAYMENT_PROVIDER", "lava")
    PAYMENT_WEBHOOK_SECRET = data.get("PAYMENT_WEBHOOK_SECRET", "")
    WEBHOOK_STORE_TIMEOUT_SECONDS = data.get("WEBHOOK_STORE_TIMEOUT_SECONDS", 10)

    # Subscriptions
    SUBSCRIPTION_PERIOD_DAYS = data.get("SUBSCRIPTION_PERIOD_DAYS", 30)  # Paid period and quota cycle
    DISABLE_SUBSCRIPTIONS = bool(data.get("DISABLE_SUBSCRIPTIONS", False))
