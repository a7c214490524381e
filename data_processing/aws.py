"""
boto3 session and client construction from explicit AWS configuration.
"""

import logging
from typing import Any, Dict

import boto3
from botocore.config import Config

from data_processing.config import AWSConfig

logger = logging.getLogger(__name__)


def create_session(aws_config: AWSConfig) -> boto3.session.Session:
    """Create a boto3 session for the configured region and credentials."""
    session_kwargs: Dict[str, str] = {'region_name': aws_config.region}
    if aws_config.credentials:
        session_kwargs['aws_access_key_id'] = aws_config.credentials.access_key_id
        session_kwargs['aws_secret_access_key'] = aws_config.credentials.secret_access_key
    return boto3.session.Session(**session_kwargs)


def _client_kwargs(aws_config: AWSConfig, service: str) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    if aws_config.endpoint_url:
        kwargs['endpoint_url'] = aws_config.endpoint_url
    # Emulated endpoints only resolve path-style bucket URLs
    if service == 's3' and aws_config.is_local_endpoint:
        kwargs['config'] = Config(s3={'addressing_style': 'path'})
    return kwargs


def create_client(service: str, aws_config: AWSConfig) -> Any:
    """Create a low-level boto3 client for a service."""
    logger.debug(f"Creating {service} client (endpoint: {aws_config.endpoint_url or 'default'})")
    session = create_session(aws_config)
    return session.client(service, **_client_kwargs(aws_config, service))


def create_resource(service: str, aws_config: AWSConfig) -> Any:
    """Create a boto3 service resource."""
    session = create_session(aws_config)
    return session.resource(service, **_client_kwargs(aws_config, service))
