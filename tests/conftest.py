from datetime import datetime

import pytest

from lotbot.common.config import (
    Config,
    CredentialsConfig,
    ExplorerConfig,
    NotificationsConfig,
    NotificationRetryConfig,
    PipelineConfig,
    PortalConfig,
    RunConfig,
)
from lotbot.common.models import DesiredEntry
from lotbot.common.scheduler import PortalClock


@pytest.fixture()
def config(tmp_path):
    return Config(
        credentials=CredentialsConfig(user_id="12345678", password="secret"),
        portal=PortalConfig(settle_seconds=0, selection_settle_seconds=0),
        pipeline=PipelineConfig(entry_delay_seconds=0),
        explorer=ExplorerConfig(
            first_half_urls=["https://portal.test/Comparison?gym&d="],
            second_half_urls=["https://portal.test/Comparison?school&d="],
        ),
        notifications=NotificationsConfig(retry=NotificationRetryConfig(max_attempts=2, delay_seconds=0)),
        run=RunConfig(result_log_file=str(tmp_path / "log.txt"), diagnostic_dir=str(tmp_path)),
    )


@pytest.fixture()
def first_half_clock():
    return PortalClock(fixed_now=datetime(2025, 12, 3, 10, 0))


@pytest.fixture()
def second_half_clock():
    return PortalClock(fixed_now=datetime(2025, 12, 20, 10, 0))


@pytest.fixture()
def entry():
    return DesiredEntry(
        facility="中央体育館",
        room="競技場 / Ａ面",
        date="2026年1月10日(土)",
        time="9:00-12:00",
    )
