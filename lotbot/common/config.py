"""
Configuration management for the lottery bot
"""
import os
import yaml
from pathlib import Path
from datetime import date
from typing import Optional, List
from pydantic import BaseModel, Field, ValidationInfo, field_validator
from dateutil import parser as date_parser

from .models import DesiredEntry

PORTAL_BASE_URL = "https://yoyaku.harp.lg.jp/sapporo"

_COMPARISON = f"{PORTAL_BASE_URL}/FacilityAvailability/Comparison?"

# Gymnasium comparison pages, explored during the first half of the month
FIRST_HALF_COMPARISON_URLS = [
    _COMPARISON
    + "tg%5B0%5D.lg=011002&tg%5B0%5D.fc=0004&tg%5B0%5D.r%5B0%5D=001"
    + "&tg%5B1%5D.lg=011002&tg%5B1%5D.fc=0040&tg%5B1%5D.r%5B0%5D=002&tg%5B1%5D.r%5B1%5D=001"
    + "&tg%5B2%5D.lg=011002&tg%5B2%5D.fc=0005&tg%5B2%5D.r%5B0%5D=001"
    + "&tg%5B3%5D.lg=011002&tg%5B3%5D.fc=0010&tg%5B3%5D.r%5B0%5D=001&tg%5B3%5D.r%5B1%5D=002"
    + "&tg%5B4%5D.lg=011002&tg%5B4%5D.fc=0020&tg%5B4%5D.r%5B0%5D=001&tg%5B4%5D.r%5B1%5D=002"
    + "&tg%5B5%5D.lg=011002&tg%5B5%5D.fc=0030&tg%5B5%5D.r%5B0%5D=001&tg%5B5%5D.r%5B1%5D=002"
    + "&d=",
]


def _school_comparison(facility_codes: List[str]) -> str:
    targets = "&".join(
        f"tg%5B{i}%5D.lg=011002&tg%5B{i}%5D.fc={code}&tg%5B{i}%5D.r%5B0%5D=050"
        for i, code in enumerate(facility_codes)
    )
    return f"{_COMPARISON}{targets}&d="


# School gymnasium comparison pages, explored during the second half
SECOND_HALF_COMPARISON_URLS = [
    _school_comparison(["0202", "0214", "0217", "0230", "0231", "0242", "0285", "0292", "0302", "0305"]),
    _school_comparison(["0337", "0338", "0340", "0341", "0342", "0344", "0361", "0366", "0391"]),
]


class CredentialsConfig(BaseModel):
    user_id: str = ""
    password: str = ""


class StoreConfig(BaseModel):
    """Web app API that holds desired entries, jobs and progress"""
    base_url: Optional[str] = None
    api_token: Optional[str] = None
    group_id: Optional[str] = None
    job_id: Optional[str] = None
    timeout: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and (self.group_id or self.job_id))


class PortalConfig(BaseModel):
    base_url: str = PORTAL_BASE_URL
    sport: str = "バドミントン"
    participants: int = 20
    wait_timeout: float = 10.0
    login_timeout: float = 15.0
    login_link_timeout: float = 5.0
    tutorial_timeout: float = 2.0
    settle_seconds: float = 1.0
    suggestion_settle_seconds: float = 3.0
    selection_settle_seconds: float = 4.0
    form_settle_seconds: float = 3.0
    comparison_settle_seconds: float = 2.0


class BrowserConfig(BaseModel):
    headless: bool = False
    slow_mo: int = 0
    locale: str = "ja-JP"
    timezone: str = "Asia/Tokyo"
    viewport_width: int = 2700
    viewport_height: int = 1080
    user_agent: Optional[str] = None


class PipelineConfig(BaseModel):
    entry_delay_seconds: float = 5.0


class ExplorerConfig(BaseModel):
    concurrency: int = 10
    weekday_evening_hour: int = 18
    holidays: List[date] = Field(default_factory=list)
    first_half_urls: List[str] = Field(default_factory=lambda: list(FIRST_HALF_COMPARISON_URLS))
    second_half_urls: List[str] = Field(default_factory=lambda: list(SECOND_HALF_COMPARISON_URLS))
    progress_every: int = 50

    @field_validator("holidays", mode="before")
    @classmethod
    def parse_holidays(cls, value):
        if value is None:
            return []
        return [
            date_parser.parse(item).date() if isinstance(item, str) else item
            for item in value
        ]

    @field_validator("concurrency", "progress_every")
    @classmethod
    def positive(cls, value: int, info: ValidationInfo) -> int:
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value


class LineConfig(BaseModel):
    enabled: bool = False
    channel_token: Optional[str] = None
    to: Optional[str] = None


class WebhookConfig(BaseModel):
    enabled: bool = False
    url: Optional[str] = None


class NotificationRetryConfig(BaseModel):
    max_attempts: int = 3
    delay_seconds: float = 2.0


class NotificationsConfig(BaseModel):
    line: LineConfig = Field(default_factory=LineConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    retry: NotificationRetryConfig = Field(default_factory=NotificationRetryConfig)
    label: Optional[str] = None


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[str] = "lotbot.log"


class RunConfig(BaseModel):
    result_log_file: str = "log.txt"
    diagnostic_dir: str = "."


class Config(BaseModel):
    """Main configuration class"""
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    entries: List[DesiredEntry] = Field(default_factory=list)
    expected_total: Optional[int] = None
    portal: PortalConfig = Field(default_factory=PortalConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    explorer: ExplorerConfig = Field(default_factory=ExplorerConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    run: RunConfig = Field(default_factory=RunConfig)

    @field_validator("expected_total")
    @classmethod
    def non_negative_total(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("expected_total must be >= 0")
        return value

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from YAML file"""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data).with_env_overrides()

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables"""
        return cls().with_env_overrides()

    def with_env_overrides(self) -> "Config":
        """
        Apply the variables the job runner exports (SERVICE_USER, JOB_ID, ...).

        Secrets are normally injected this way rather than written to the file.
        """
        env = os.environ
        credentials = self.credentials.model_copy(update={
            k: v for k, v in {
                "user_id": env.get("SERVICE_USER"),
                "password": env.get("SERVICE_PASS"),
            }.items() if v
        })
        store = self.store.model_copy(update={
            k: v for k, v in {
                "base_url": env.get("API_BASE_URL") or env.get("NEXT_PUBLIC_APP_URL"),
                "api_token": env.get("API_TOKEN"),
                "group_id": env.get("PLAYWRIGHT_GROUP_ID") or env.get("GROUP_ID"),
                "job_id": env.get("JOB_ID"),
            }.items() if v
        })
        line = self.notifications.line.model_copy(update={
            k: v for k, v in {
                "channel_token": env.get("LINE_CHANNEL_TOKEN"),
                "to": env.get("LINE_TO"),
            }.items() if v
        })
        if line.channel_token and line.to and "LINE_CHANNEL_TOKEN" in env:
            line = line.model_copy(update={"enabled": True})
        notifications = self.notifications.model_copy(update={"line": line})

        browser = self.browser
        if "LOTBOT_HEADLESS" in env:
            headless = env["LOTBOT_HEADLESS"].strip().lower() in ("1", "true", "yes")
            browser = browser.model_copy(update={"headless": headless})

        return self.model_copy(update={
            "credentials": credentials,
            "store": store,
            "notifications": notifications,
            "browser": browser,
        })

    def to_yaml(self, path: str | Path):
        """Save configuration to YAML file"""
        path = Path(path)
        with open(path, 'w', encoding="utf-8") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, allow_unicode=True)


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from file or environment"""
    if path:
        return Config.from_yaml(path)

    # Try default locations
    default_paths = [
        Path("config/config.yaml"),
        Path("config.yaml"),
        Path.home() / ".lotbot" / "config.yaml",
    ]

    for p in default_paths:
        if p.exists():
            return Config.from_yaml(p)

    # Fall back to environment variables
    config = Config.from_env()
    if not config.credentials.user_id or not config.credentials.password:
        raise RuntimeError(
            "No config file found and missing SERVICE_USER/SERVICE_PASS. "
            "Create config/config.yaml or set the environment variables."
        )
    return config
