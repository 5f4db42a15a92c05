"""
Startup configuration providers.

A provider returns the runtime secrets as a flat key/value map. The service
reads the store endpoint and credentials from it and refuses to start when
the provider fails.

Keys understood by the service:
- DB_URL: SQLAlchemy URL of the store
- DB_USER / DB_PASSWORD: credentials merged into DB_URL
- KAFKA_BOOTSTRAP_SERVERS: overrides the configured broker
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .config import Settings

_logger = logging.getLogger(__name__)

SECRET_KEYS = ("DB_URL", "DB_USER", "DB_PASSWORD", "KAFKA_BOOTSTRAP_SERVERS")


class SecretsError(Exception):
    """The configuration provider could not produce the secrets."""


class EnvSecretsProvider:
    """Reads the secrets from the process environment, falling back to settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def fetch(self) -> Dict[str, str]:
        secrets = {key: os.environ[key] for key in SECRET_KEYS if os.environ.get(key)}
        secrets.setdefault("DB_URL", self.settings.DB_URL)
        return secrets


class LambdaSecretsProvider:
    """
    Invokes an AWS Lambda that returns the secrets.

    The function answers with a payload shaped as
    {"body": "{\"secret\": \"{...}\"}"}, each level JSON-encoded, or with an
    "errorMessage" key when it failed.
    """

    def __init__(self, function_name: str, region: str, client: Optional[Any] = None):
        self.function_name = function_name
        self.region = region
        self.client = client or boto3.client("lambda", region_name=region)

    def _invoke(self) -> Dict[str, str]:
        response = self.client.invoke(FunctionName=self.function_name)
        payload = json.loads(response["Payload"].read())
        if payload.get("errorMessage"):
            raise SecretsError(payload["errorMessage"])
        body = json.loads(payload["body"])
        return json.loads(body["secret"])

    async def fetch(self) -> Dict[str, str]:
        try:
            secrets = await asyncio.to_thread(self._invoke)
        except SecretsError:
            raise
        except (BotoCoreError, ClientError) as e:
            raise SecretsError(f"invoking {self.function_name} failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise SecretsError(f"malformed secrets payload from {self.function_name}: {e}") from e
        if not isinstance(secrets, dict):
            raise SecretsError(f"secrets from {self.function_name} are not a key/value map")
        _logger.info("Secrets fetched | function=%s keys=%s", self.function_name, sorted(secrets))
        return secrets


def build_secrets_provider(settings: Settings):
    if settings.SECRETS_PROVIDER == "lambda":
        return LambdaSecretsProvider(settings.SECRETS_LAMBDA_FUNCTION, settings.AWS_REGION)
    if settings.SECRETS_PROVIDER == "env":
        return EnvSecretsProvider(settings)
    raise SecretsError(f"unknown secrets provider: {settings.SECRETS_PROVIDER}")


def store_url_from_secrets(secrets: Dict[str, str], default_url: str) -> URL:
    try:
        url = make_url(secrets.get("DB_URL") or default_url)
    except ArgumentError as e:
        raise SecretsError(f"invalid DB_URL: {e}") from e
    if secrets.get("DB_USER"):
        url = url.set(username=secrets["DB_USER"], password=secrets.get("DB_PASSWORD"))
    return url
