"""
Pytest configuration and shared fixtures.
"""

import json
import threading
import time
from typing import Dict, List, Optional

import pytest
import requests

from stakeselect.logger import get_logger, reset_logger
from stakeselect.models import StakeholderRef

# Short quiet period so debounce tests stay fast; gaps between inputs
# in the tests are an order of magnitude smaller.
QUIET = 0.1


class FakeSearchClient:
    """In-memory stand-in for the remote directory."""

    def __init__(
        self,
        results: Optional[Dict[str, List[StakeholderRef]]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.results = results or {}
        self.delays = delays or {}
        self.error: Optional[Exception] = None
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def search(self, entity, match_mode, query):
        with self._lock:
            self.calls.append((entity, match_mode, query))
        delay = self.delays.get(query, 0)
        if delay:
            time.sleep(delay)
        if self.error is not None:
            raise self.error
        return list(self.results.get(query, []))

    @property
    def queries(self) -> List[str]:
        return [call[2] for call in self.calls]


def make_response(status: int, payload=None, text: Optional[str] = None) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    resp = requests.Response()
    resp.status_code = status
    resp.url = "https://www.zohoapis.com/crm/v2/Accounts/search"
    if payload is not None:
        resp._content = json.dumps(payload).encode("utf-8")
    else:
        resp._content = (text or "").encode("utf-8")
    return resp


@pytest.fixture(autouse=True)
def test_logger(tmp_path):
    """Fresh global logger per test, writing only to a temp directory."""
    reset_logger()
    logger = get_logger(log_dir=tmp_path / "logs", enable_console=False, level="DEBUG")
    yield logger
    for handler in list(logger.logger.handlers):
        handler.close()
        logger.logger.removeHandler(handler)
    reset_logger()


@pytest.fixture
def acme() -> StakeholderRef:
    return StakeholderRef(id="4150868000000224001", name="Acme Corp")


@pytest.fixture
def acme_media() -> StakeholderRef:
    return StakeholderRef(id="4150868000000224002", name="Acme Media")


@pytest.fixture
def beta() -> StakeholderRef:
    return StakeholderRef(id="4150868000000224007", name="Beta Holdings")


@pytest.fixture
def fake_client(acme, acme_media, beta) -> FakeSearchClient:
    return FakeSearchClient(results={
        "acme": [acme, acme_media],
        "acme corp": [acme],
        "beta": [beta],
    })


@pytest.fixture
def changes() -> list:
    """Records host callback invocations as (field, value) tuples."""
    return []


@pytest.fixture
def on_change(changes):
    def callback(field, value):
        changes.append((field, value))
    return callback


@pytest.fixture
def search_payload() -> dict:
    """Sample Zoho search response body."""
    return {
        "data": [
            {"id": "4150868000000224001", "Account_Name": "Acme Corp", "Phone": "555-0100"},
            {"id": "4150868000000224002", "Account_Name": "Acme Media"},
        ],
        "info": {"per_page": 200, "count": 2, "page": 1, "more_records": False},
    }
