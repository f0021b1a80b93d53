"""
Browser URL helpers for the Sapporo facility reservation portal.
"""
from datetime import date
from urllib.parse import urljoin, urlparse

BASE_URL = "https://yoyaku.harp.lg.jp/sapporo"


class WebPages:
    """URLs and URL prefixes the automation waits on"""

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url.rstrip("/")

    def login(self) -> str:
        return f"{self.base_url}/Login"

    def request_statuses(self) -> str:
        return f"{self.base_url}/RequestStatuses/Index?t=0&p=1&s=20"

    def request_statuses_prefix(self) -> str:
        return f"{self.base_url}/RequestStatuses/"

    def lot_search(self, day: date) -> str:
        return f"{self.lot_search_prefix()}{day.isoformat()}"

    def lot_search_prefix(self) -> str:
        return f"{self.base_url}/?u%5B0%5D=28&u%5B1%5D=76&ud="

    def facility_search_prefix(self) -> str:
        return f"{self.base_url}/FacilitySearch"

    def comparison_prefix(self) -> str:
        return f"{self.base_url}/FacilityAvailability/Comparison"

    def availability_prefix(self) -> str:
        return f"{self.base_url}/FacilityAvailability/Index"

    def lot_request_prefix(self) -> str:
        return f"{self.base_url}/LotRequests/"

    def confirmation_prefix(self) -> str:
        return f"{self.base_url}/ReservationRequests/InsertConfirm"

    def absolute(self, href: str) -> str:
        parsed = urlparse(self.base_url)
        return urljoin(f"{parsed.scheme}://{parsed.netloc}/", href)
