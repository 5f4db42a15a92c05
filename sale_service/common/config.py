import os
from dataclasses import dataclass


def _get_int(env_name: str, default: int) -> int:
    val = os.getenv(env_name)
    if val is None or not val.strip():
        return default
    return int(val)


@dataclass
class Settings:
    # App
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = _get_int("APP_PORT", 8098)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Configuration provider ("env" or "lambda")
    SECRETS_PROVIDER: str = os.getenv("SECRETS_PROVIDER", "env")
    SECRETS_LAMBDA_FUNCTION: str = os.getenv("SECRETS_LAMBDA_FUNCTION", "fetchSecretsFunction")
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-2")

    # Store (used by the env provider, or when the secrets omit it)
    DB_URL: str = os.getenv("DB_URL", "sqlite+aiosqlite:///./sales.db")

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")
    SALE_EVENTS_TOPIC: str = os.getenv("SALE_EVENTS_TOPIC", "sale-events")
    # Initial attempt plus a single reconnect
    KAFKA_CONNECT_ATTEMPTS: int = _get_int("KAFKA_CONNECT_ATTEMPTS", 2)
    KAFKA_CONNECT_BACKOFF: float = float(os.getenv("KAFKA_CONNECT_BACKOFF", "1.0"))

    # Prometheus exporter, 0 disables it
    METRICS_PORT: int = _get_int("METRICS_PORT", 0)


settings = Settings()
