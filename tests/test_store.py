"""
Tests for the metadata store clients (lotbot/store/client.py)
"""
import json

import httpx
import pytest

from lotbot.common.config import Config, StoreConfig
from lotbot.common.errors import StoreError
from lotbot.common.models import DesiredEntry
from lotbot.store.client import (
    ApiMetadataStore,
    ConfigMetadataStore,
    JobStatus,
    create_store,
)

BASE_URL = "https://app.example.com"


def make_store(handler, **overrides) -> ApiMetadataStore:
    settings = {"base_url": BASE_URL + "/", "api_token": "secret", "group_id": "group-1", "job_id": "job-1"}
    settings.update(overrides)
    config = StoreConfig(**settings)
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        headers={"API_TOKEN": "secret"},
    )
    return ApiMetadataStore(config, client=client)


class TestApiMetadataStore:
    @pytest.mark.asyncio
    async def test_fetch_job(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/jobs"
            assert request.url.params["jobId"] == "job-1"
            assert request.headers["API_TOKEN"] == "secret"
            return httpx.Response(200, json={
                "jobId": "job-1", "entryCount": 6, "userId": "12345678", "password": "pw", "status": "pending",
            })

        async with make_store(handler) as store:
            job = await store.fetch_job()

        assert job.job_id == "job-1"
        assert job.entry_count == 6
        assert job.user_id == "12345678"
        assert job.password == "pw"

    @pytest.mark.asyncio
    async def test_fetch_job_without_job_id(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with make_store(handler, job_id=None) as store:
            assert await store.fetch_job() is None

    @pytest.mark.asyncio
    async def test_non_integer_entry_count_ignored(self):
        def handler(request):
            return httpx.Response(200, json={"entryCount": "6"})

        async with make_store(handler) as store:
            job = await store.fetch_job()

        assert job.entry_count is None

    @pytest.mark.asyncio
    async def test_fetch_desired_entries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/groups/list"
            assert request.url.params["groupId"] == "group-1"
            return httpx.Response(200, json={"list": [
                {"gymName": "中央体育館", "room": "競技場", "date": "2026-01-10", "time": "9:00-12:00"},
                {"gymName": "", "room": "", "date": "", "time": ""},
                {"gymName": 12, "room": "体育室", "date": "2026-01-11", "time": "18-21"},
                "garbage",
            ]})

        async with make_store(handler) as store:
            entries = await store.fetch_desired_entries()

        assert entries == [
            DesiredEntry(facility="中央体育館", room="競技場", date="2026-01-10", time="9:00-12:00"),
            DesiredEntry(facility="", room="体育室", date="2026-01-11", time="18-21"),
        ]

    @pytest.mark.asyncio
    async def test_missing_list_gives_no_entries(self):
        def handler(request):
            return httpx.Response(200, json={})

        async with make_store(handler) as store:
            assert await store.fetch_desired_entries() == []

    @pytest.mark.asyncio
    async def test_http_error_raises_store_error(self):
        def handler(request):
            return httpx.Response(500, text="Failed to fetch job")

        async with make_store(handler) as store:
            with pytest.raises(StoreError) as exc_info:
                await store.fetch_job()

        assert exc_info.value.status_code == 500
        assert exc_info.value.response_body == "Failed to fetch job"

    @pytest.mark.asyncio
    async def test_transport_error_raises_store_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_store(handler) as store:
            with pytest.raises(StoreError):
                await store.fetch_desired_entries()

    @pytest.mark.asyncio
    async def test_updates(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append((request.method, request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"jobId": "job-1"})

        async with make_store(handler) as store:
            await store.update_progress("1/3件")
            await store.update_status(JobStatus.COMPLETED, "成功1件 失敗0件 スキップ0件 キャンセル2件")
            await store.cleanup_credentials()

        assert requests == [
            ("POST", "/api/jobs/progress", {"jobId": "job-1", "progress": "1/3件"}),
            ("PATCH", "/api/jobs", {"jobId": "job-1", "status": "completed", "message": "成功1件 失敗0件 スキップ0件 キャンセル2件"}),
            ("POST", "/api/jobs/cleanup", {"jobId": "job-1"}),
        ]

    def test_base_url_required(self):
        with pytest.raises(ValueError):
            ApiMetadataStore(StoreConfig())


class TestConfigMetadataStore:
    @pytest.mark.asyncio
    async def test_serves_configured_entries(self):
        config = Config(
            expected_total=5,
            entries=[
                DesiredEntry(facility="中央体育館", room="競技場", date="2026-01-10", time="9-12"),
                DesiredEntry(),
            ],
        )
        store = ConfigMetadataStore(config)

        job = await store.fetch_job()
        entries = await store.fetch_desired_entries()

        assert job.entry_count == 5
        assert len(entries) == 1

    @pytest.mark.asyncio
    async def test_no_job_without_expected_total(self):
        assert await ConfigMetadataStore(Config()).fetch_job() is None

    @pytest.mark.asyncio
    async def test_records_progress_and_status(self):
        store = ConfigMetadataStore(Config())
        await store.update_progress("0/1件")
        await store.update_status(JobStatus.FAILED, "Login failed")
        assert store.progress == ["0/1件"]
        assert (store.status, store.message) == ("failed", "Login failed")


class TestCreateStore:
    def test_api_store_when_configured(self):
        config = Config(store=StoreConfig(base_url=BASE_URL, group_id="group-1"))
        assert isinstance(create_store(config), ApiMetadataStore)

    def test_config_store_otherwise(self):
        assert isinstance(create_store(Config()), ConfigMetadataStore)

    def test_api_store_for_job_without_group(self):
        config = Config(store=StoreConfig(base_url=BASE_URL, job_id="job-1"))
        assert config.store.enabled
        assert isinstance(create_store(config), ApiMetadataStore)

    def test_base_url_alone_is_not_enough(self):
        config = Config(store=StoreConfig(base_url=BASE_URL))
        assert not config.store.enabled
        assert isinstance(create_store(config), ConfigMetadataStore)
