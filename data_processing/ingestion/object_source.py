"""
Object sources the batch path reads CSV files from.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import unquote_plus

from botocore.exceptions import BotoCoreError, ClientError

from data_processing.errors import SourceUnavailableError

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ('NoSuchKey', 'NoSuchBucket', '404', 'NotFound')


@dataclass(frozen=True)
class ObjectLocator:
    """Bucket/key addressing of one object."""

    bucket: Optional[str]
    key: str

    @property
    def uri(self) -> str:
        if self.bucket:
            return f"s3://{self.bucket}/{self.key}"
        return self.key


def locator_from_s3_event(event: Mapping[str, Any]) -> ObjectLocator:
    """Extract the object locator from an S3 notification event.

    One object per invocation: extra records are ignored.
    """
    try:
        records = event['Records']
        s3_info = records[0]['s3']
        bucket = s3_info['bucket']['name']
        raw_key = s3_info['object']['key']
    except (KeyError, IndexError, TypeError) as e:
        raise SourceUnavailableError(f"Event does not describe an S3 object: missing {e}") from e

    if len(records) > 1:
        logger.warning(f"Event carries {len(records)} records, only the first is processed")

    return ObjectLocator(bucket=bucket, key=unquote_plus(raw_key))


class ObjectSource(ABC):
    """Reads raw bytes for a locator."""

    @abstractmethod
    def read(self, locator: ObjectLocator) -> bytes:
        """Return the object's bytes or raise SourceUnavailableError."""

    def health_check(self, bucket: str = None) -> bool:
        return True


class S3ObjectSource(ObjectSource):
    """Object source backed by S3 (or an S3-compatible endpoint)."""

    def __init__(self, s3_client: Any):
        self.s3 = s3_client

    def read(self, locator: ObjectLocator) -> bytes:
        logger.info(f"Reading object: {locator.uri}")
        try:
            response = self.s3.get_object(Bucket=locator.bucket, Key=locator.key)
            return response['Body'].read()
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', '')
            if code in NOT_FOUND_CODES:
                raise SourceUnavailableError(f"Object not found: {locator.uri}") from e
            raise SourceUnavailableError(f"Failed to read {locator.uri}: {e}") from e
        except BotoCoreError as e:
            raise SourceUnavailableError(f"Failed to read {locator.uri}: {e}") from e

    def bucket_exists(self, bucket: str) -> bool:
        """Check whether a bucket exists and is reachable."""
        try:
            self.s3.head_bucket(Bucket=bucket)
            return True
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', '')
            if code in NOT_FOUND_CODES:
                return False
            raise

    def health_check(self, bucket: str = None) -> bool:
        if not bucket:
            return True
        try:
            return self.bucket_exists(bucket)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Object source health check failed: {e}")
            return False


class LocalObjectSource(ObjectSource):
    """Object source backed by a directory; the key is a relative or absolute path."""

    def __init__(self, base_dir: str = "."):
        self.base_dir = Path(base_dir)

    def resolve(self, locator: ObjectLocator) -> Path:
        path = Path(locator.key)
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    def read(self, locator: ObjectLocator) -> bytes:
        path = self.resolve(locator)
        logger.info(f"Reading local file: {path}")
        if not path.is_file():
            raise SourceUnavailableError(f"File not found: {path}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise SourceUnavailableError(f"Failed to read {path}: {e}") from e

    def health_check(self, bucket: str = None) -> bool:
        return self.base_dir.is_dir()
