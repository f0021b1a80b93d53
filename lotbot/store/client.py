"""
Metadata store clients

The web app keeps each group's desired entries and the job that triggered a
run. ``ApiMetadataStore`` talks to its HTTP API; ``ConfigMetadataStore``
serves entries from the config file for standalone runs.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional
import httpx

from ..common.config import Config, StoreConfig
from ..common.errors import StoreError
from ..common.models import DesiredEntry, Job

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Final job states reported back to the web app"""
    COMPLETED = "completed"
    FAILED = "failed"


class MetadataStore(ABC):
    """Where desired entries come from and where run progress goes"""

    @abstractmethod
    async def fetch_job(self) -> Optional[Job]:
        """The job for this run, or None for an ad-hoc run"""

    @abstractmethod
    async def fetch_desired_entries(self) -> List[DesiredEntry]:
        pass

    @abstractmethod
    async def update_progress(self, progress: str):
        pass

    @abstractmethod
    async def update_status(self, status: JobStatus, message: Optional[str] = None):
        pass

    @abstractmethod
    async def cleanup_credentials(self):
        """Drop the portal credentials stored on the job"""

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()


class ApiMetadataStore(MetadataStore):
    """Web app HTTP API client"""

    def __init__(self, config: StoreConfig, client: Optional[httpx.AsyncClient] = None):
        if not config.base_url:
            raise ValueError("store.base_url is required for the API store")
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        headers = {"API_TOKEN": config.api_token} if config.api_token else {}
        self.client = client or httpx.AsyncClient(
            headers=headers,
            timeout=config.timeout,
            follow_redirects=True
        )

    async def close(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise StoreError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text
            )
        if not response.content:
            return {}
        return response.json()

    # ========================================
    # Jobs
    # ========================================

    async def fetch_job(self) -> Optional[Job]:
        if not self.config.job_id:
            logger.info("JOB_ID is not set; running without a job")
            return None

        data = await self._request("GET", "/api/jobs", params={"jobId": self.config.job_id})
        entry_count = data.get("entryCount")
        return Job(
            job_id=self.config.job_id,
            entry_count=entry_count if isinstance(entry_count, int) else None,
            user_id=data.get("userId") or None,
            password=data.get("password") or None,
        )

    async def update_progress(self, progress: str):
        if not self.config.job_id:
            return
        await self._request(
            "POST",
            "/api/jobs/progress",
            json={"jobId": self.config.job_id, "progress": progress}
        )

    async def update_status(self, status: JobStatus, message: Optional[str] = None):
        if not self.config.job_id:
            return
        body = {"jobId": self.config.job_id, "status": status.value}
        if message is not None:
            body["message"] = message
        await self._request("PATCH", "/api/jobs", json=body)

    async def cleanup_credentials(self):
        if not self.config.job_id:
            return
        await self._request("POST", "/api/jobs/cleanup", json={"jobId": self.config.job_id})
        logger.info("Removed stored credentials from the job")

    # ========================================
    # Entries
    # ========================================

    async def fetch_desired_entries(self) -> List[DesiredEntry]:
        if not self.config.group_id:
            logger.info("Group id is not set; no desired entries to fetch")
            return []

        data = await self._request("GET", "/api/groups/list", params={"groupId": self.config.group_id})
        items = data.get("list")
        if not isinstance(items, list):
            return []

        entries = []
        for item in items:
            if not isinstance(item, dict):
                continue
            entry = DesiredEntry(**{
                key: value if isinstance(value, str) else ""
                for key, value in item.items()
                if key in ("gymName", "room", "date", "time")
            })
            if not entry.is_blank:
                entries.append(entry)

        logger.info(f"Fetched {len(entries)} desired entries")
        return entries


class ConfigMetadataStore(MetadataStore):
    """Entries and expected total taken from the config file; progress is only logged"""

    def __init__(self, config: Config):
        self.config = config
        self.progress: List[str] = []
        self.status: Optional[JobStatus] = None
        self.message: Optional[str] = None

    async def fetch_job(self) -> Optional[Job]:
        if self.config.expected_total is None:
            return None
        return Job(job_id="local", entry_count=self.config.expected_total)

    async def fetch_desired_entries(self) -> List[DesiredEntry]:
        return [entry for entry in self.config.entries if not entry.is_blank]

    async def update_progress(self, progress: str):
        self.progress.append(progress)
        logger.info(f"Progress: {progress}")

    async def update_status(self, status: JobStatus, message: Optional[str] = None):
        self.status = status
        self.message = message
        logger.info(f"Status: {status.value}" + (f" ({message})" if message else ""))

    async def cleanup_credentials(self):
        pass


def create_store(config: Config) -> MetadataStore:
    """API store when the web app is configured, otherwise the config file"""
    if config.store.enabled:
        return ApiMetadataStore(config.store)
    return ConfigMetadataStore(config)
