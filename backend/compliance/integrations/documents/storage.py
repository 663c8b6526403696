"""
Document storage backends.

S3 when DOCUMENTS_BUCKET is configured, otherwise a local directory served
under /temp/.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from compliance.config import settings
from compliance.platform.errors import DocumentGenerationError

logger = logging.getLogger(__name__)


class DocumentStorage(ABC):
    """Stores rendered documents and returns the URL they are served from."""

    @abstractmethod
    def save(self, file_name: str, content: bytes, content_type: str = "application/pdf") -> str:
        """Persist ``content`` and return its URL."""


class LocalDocumentStorage(DocumentStorage):
    """Writes documents to a local directory."""

    def __init__(self, directory: Optional[str] = None, url_prefix: str = "/temp"):
        self.directory = Path(directory or settings.DOCUMENTS_LOCAL_DIR)
        self.url_prefix = url_prefix.rstrip("/")

    def save(self, file_name: str, content: bytes, content_type: str = "application/pdf") -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        (self.directory / file_name).write_bytes(content)
        return f"{self.url_prefix}/{file_name}"


class S3DocumentStorage(DocumentStorage):
    """Uploads documents to an S3 bucket."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        public_base_url: str = "",
        region_name: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.prefix = prefix
        self.public_base_url = public_base_url.rstrip("/")
        self.region_name = region_name or settings.AWS_REGION
        self._client = client or boto3.client("s3", region_name=self.region_name)

    def save(self, file_name: str, content: bytes, content_type: str = "application/pdf") -> str:
        key = f"{self.prefix}{file_name}"
        try:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise DocumentGenerationError(
                f"Failed to upload document: {str(e)}",
                details={"bucket": self.bucket, "key": key},
            )

        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.{self.region_name}.amazonaws.com/{key}"


def build_document_storage() -> DocumentStorage:
    if settings.DOCUMENTS_BUCKET:
        return S3DocumentStorage(
            bucket=settings.DOCUMENTS_BUCKET,
            prefix=settings.DOCUMENTS_PREFIX,
            public_base_url=settings.DOCUMENTS_PUBLIC_BASE_URL,
        )
    logger.info("DOCUMENTS_BUCKET not set, storing documents locally",
                extra={"directory": settings.DOCUMENTS_LOCAL_DIR})
    return LocalDocumentStorage()
