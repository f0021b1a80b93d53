"""
Web app metadata store
"""
from .client import (
    ApiMetadataStore,
    ConfigMetadataStore,
    JobStatus,
    MetadataStore,
    create_store,
)

__all__ = [
    "ApiMetadataStore",
    "ConfigMetadataStore",
    "JobStatus",
    "MetadataStore",
    "create_store",
]
