"""
Runtime configuration loaded once from the environment (and an optional .env file).
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from data_processing.errors import ConfigurationError

STORE_BACKENDS = ("dynamodb", "sqlite", "postgres")
NOTIFIER_BACKENDS = ("sns", "email", "log")


class AWSCredentials(BaseModel):
    """Static access key pair; when absent boto3 resolves credentials itself."""

    access_key_id: str
    secret_access_key: str


class AWSConfig(BaseModel):
    """Connection options shared by every AWS client the service builds."""

    endpoint_url: Optional[str] = None
    region: str = "us-east-1"
    credentials: Optional[AWSCredentials] = None

    @property
    def is_local_endpoint(self) -> bool:
        return bool(self.endpoint_url) and (
            "localhost" in self.endpoint_url or "localstack" in self.endpoint_url
        )


class SMTPConfig(BaseModel):
    """SMTP settings for the e-mail notifier."""

    server: str = "smtp.gmail.com"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    recipient: Optional[str] = None


class Settings(BaseModel):
    """All options recognised by the service."""

    aws: AWSConfig = AWSConfig()
    table_name: str = "ProcessedData"
    bucket_name: str = "data-processing-bucket"
    topic_arn: Optional[str] = None

    store_backend: str = "dynamodb"
    sqlite_path: str = "data/processed_records.db"
    database_url: Optional[str] = None

    notifier_backend: str = "sns"
    smtp: SMTPConfig = SMTPConfig()

    local_data_dir: str = "data/input"

    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v):
        v = v.strip().lower()
        if v not in STORE_BACKENDS:
            raise ValueError(f"store backend must be one of {', '.join(STORE_BACKENDS)}")
        return v

    @field_validator("notifier_backend")
    @classmethod
    def validate_notifier_backend(cls, v):
        v = v.strip().lower()
        if v not in NOTIFIER_BACKENDS:
            raise ValueError(f"notifier backend must be one of {', '.join(NOTIFIER_BACKENDS)}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        v = v.strip().lower()
        if v not in ("json", "console"):
            raise ValueError("log format must be 'json' or 'console'")
        return v

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Build settings from environment variables."""
        if load_env_file:
            load_dotenv()

        access_key = os.getenv('AWS_ACCESS_KEY_ID')
        secret_key = os.getenv('AWS_SECRET_ACCESS_KEY')
        credentials = None
        if access_key and secret_key:
            credentials = {'access_key_id': access_key, 'secret_access_key': secret_key}
        elif access_key or secret_key:
            raise ConfigurationError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set together"
            )

        try:
            return cls(
                aws={
                    'endpoint_url': os.getenv('AWS_ENDPOINT_URL') or None,
                    'region': os.getenv('AWS_REGION', 'us-east-1'),
                    'credentials': credentials,
                },
                table_name=os.getenv('TABLE_NAME', 'ProcessedData'),
                bucket_name=os.getenv('BUCKET_NAME', 'data-processing-bucket'),
                topic_arn=os.getenv('TOPIC_ARN') or None,
                store_backend=os.getenv('STORE_BACKEND', 'dynamodb'),
                sqlite_path=os.getenv('SQLITE_DB_PATH', 'data/processed_records.db'),
                database_url=os.getenv('DATABASE_URL') or None,
                notifier_backend=os.getenv('NOTIFIER_BACKEND', 'sns'),
                smtp={
                    'server': os.getenv('SMTP_SERVER', 'smtp.gmail.com'),
                    'port': int(os.getenv('SMTP_PORT', '587')),
                    'username': os.getenv('SMTP_USERNAME'),
                    'password': os.getenv('SMTP_PASSWORD'),
                    'use_tls': os.getenv('SMTP_USE_TLS', 'true').lower() == 'true',
                    'recipient': os.getenv('NOTIFY_EMAIL_TO'),
                },
                local_data_dir=os.getenv('LOCAL_DATA_DIR', 'data/input'),
                log_level=os.getenv('LOG_LEVEL', 'INFO'),
                log_format=os.getenv('LOG_FORMAT', 'json'),
                log_file=os.getenv('LOG_FILE') or None,
            )
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
