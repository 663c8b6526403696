"""Document rendering and storage."""

from compliance.integrations.documents.generator import DocumentGenerator
from compliance.integrations.documents.storage import (
    DocumentStorage,
    LocalDocumentStorage,
    S3DocumentStorage,
    build_document_storage,
)

__all__ = [
    "DocumentGenerator",
    "DocumentStorage",
    "LocalDocumentStorage",
    "S3DocumentStorage",
    "build_document_storage",
]
