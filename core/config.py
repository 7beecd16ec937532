"""
Application Configuration
Add constants, secrets, env variables here
"""

from functools import lru_cache
import hashlib
import os
import json
from pathlib import Path
from typing import Literal
from pydantic import computed_field, field_validator, model_validator, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

# Load .env file into os.environ so os.getenv() works correctly
# This must happen before Settings class is instantiated
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_secret(secret_name: str, region_name: str) -> dict:
    """
    Retrieve secrets from AWS Secrets Manager

    Args:
        secret_name: Name of the secret in Secrets Manager
        region_name: AWS region where secret is stored

    Returns:
        dict: Parsed secret value

    Raises:
        ClientError: If secret cannot be retrieved
    """
    session = boto3.session.Session()
    client = session.client(
        service_name='secretsmanager',
        region_name=region_name
    )
    try:
        get_secret_value_response = client.get_secret_value(
            SecretId=secret_name
        )
    except ClientError:
        raise
    secret = get_secret_value_response['SecretString']
    return json.loads(
        secret.replace('\n', '')
    )


class Settings(BaseSettings):
    """File storage service settings"""
    client_origin: str | None = os.getenv("client_origin")

    LOG_LEVEL: str = "INFO"

    # Blob storage
    STORAGE_BACKEND: Literal["local", "s3"] = "local"
    STORAGE_DIRECTORY_PATH: str = "storage"
    STORAGE_BUCKET_URI: str | None = None
    HASH_ALGORITHM: str = "sha256"

    # Tables are normally created by alembic migrations
    CREATE_TABLES_ON_STARTUP: bool = False

    AWS_REGION: str | None = os.getenv("AWS_REGION")

    # Must use PrivateAttr for Pydantic v2 private attributes
    _secret_cache: dict | None = PrivateAttr(default=None)

    def _get_config_value(
        self,
        env_var_name: str,
        secret_key_name: str | None = None,
        default: str | None = None
    ) -> str | None:
        """
        Get configuration value from environment variable or AWS Secrets Manager (with caching).

        Args:
            env_var_name: Environment variable name to check first
            secret_key_name: Key name in AWS Secrets (defaults to env_var_name if not provided)
            default: Default value to return if not found in env or secrets

        Returns:
            Configuration value, or default value if not found
        """
        env_value = os.getenv(env_var_name)
        if env_value:
            return env_value

        if secret_key_name is None:
            secret_key_name = env_var_name

        env_secret = os.getenv("ENV_SECRETS")
        if env_secret:
            try:
                if self._secret_cache is None:
                    self._secret_cache = get_secret(
                        env_secret, os.getenv("AWS_REGION", "us-east-1")
                    )
                secret_value = self._secret_cache.get(secret_key_name)
                if secret_value is not None:
                    return secret_value
            except (ClientError, BotoCoreError):
                pass

        return default

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Build database URI from env or secrets, defaults to sqlite://"""
        return self._get_config_value("SQLALCHEMY_DATABASE_URI", default="sqlite://")

    @field_validator("HASH_ALGORITHM")
    @classmethod
    def validate_hash_algorithm(cls, value: str) -> str:
        """Only algorithms known to hashlib are accepted"""
        value = value.lower()
        if value not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported hash algorithm: {value}")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {value}")
        return value

    @model_validator(mode="after")
    def validate_storage(self) -> "Settings":
        """The s3 backend needs a bucket URI"""
        if self.STORAGE_BACKEND == "s3":
            if not self.STORAGE_BUCKET_URI or not self.STORAGE_BUCKET_URI.startswith("s3://"):
                raise ValueError(
                    "STORAGE_BUCKET_URI must be an s3:// URI when STORAGE_BACKEND is 's3'"
                )
        return self

    # Read environment variables from .env file, if it exists
    # extra='ignore' prevents validation errors from extra env vars
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class InMemoryDbSettings(Settings):
    """Settings used by the test suite"""

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        return "sqlite:///:memory:"


@lru_cache
def get_settings() -> Settings:
    """
    Get settings instance, cached for performance
    """
    if os.getenv("SETTINGS_MODE") == "test":
        return InMemoryDbSettings()
    return Settings()


if __name__ == "__main__":
    print(get_settings().SQLALCHEMY_DATABASE_URI)
