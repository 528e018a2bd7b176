# tests/conftest.py

from typing import Dict, List, Optional

import orjson
import pytest
import respx

from w3r.config import ENVIRONMENT_FIELDS
from w3r.models import (
    AttemptOutcome,
    AttemptSuccess,
    FailureKind,
    RequestDescriptor,
    TimingInfo,
    TransportFailure,
)
from w3r.transport import BaseTransport

# Sample test data
MOCK_JSON_RESPONSE = {"login": "apple-x-co", "id": 1, "name": "DUMMY", "public_repos": 8}

MOCK_TEXT_RESPONSE = "This is a sample text response."

SAMPLE_CONFIG = """
[preset.github]
url = "https://api.github.com/users/apple-x-co"
method = "GET"
headers = ["Accept: application/vnd.github+json", "X-Trace: preset"]
timeout = 10
retry = 2
retry_delay = 0.5
pretty_json = true

[preset.post]
url = "https://api.example.com/items"
method = "post"
json = '{"name": "widget"}'
basic_auth = { user = "preset-user", pass = "preset-pass" }
proxy = { host = "proxy.local", port = 3128 }
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Make sure credentials from the developer's shell never leak into tests."""
    for name in ENVIRONMENT_FIELDS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def base_url():
    """Base URL for testing."""
    return "https://api.example.com"


@pytest.fixture
def mock_router():
    """Create a mock router for httpx testing."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def config_file(tmp_path):
    """Write the sample preset file and return its path."""
    path = tmp_path / "w3r.toml"
    path.write_text(SAMPLE_CONFIG)
    return path


def create_success(
    status_code: int = 200,
    content: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
    timing: Optional[TimingInfo] = None,
) -> AttemptSuccess:
    """Create a response outcome for testing."""
    headers = headers or {"content-type": "application/json"}
    if content is None:
        content = orjson.dumps(MOCK_JSON_RESPONSE)
    return AttemptSuccess(
        status_code=status_code,
        reason_phrase="OK" if status_code == 200 else "",
        headers=tuple(headers.items()),
        content=content,
        timing=timing or TimingInfo(headers_elapsed=0.1, body_elapsed=0.02, total_elapsed=0.12),
    )


def create_failure(kind: FailureKind = FailureKind.CONNECTION_ERROR) -> TransportFailure:
    """Create a transport failure outcome for testing."""
    return TransportFailure(kind=kind, message=f"simulated {kind.value}")


class ScriptedTransport(BaseTransport):
    """Transport replaying a fixed list of outcomes; the last one repeats."""

    def __init__(self, outcomes: List[AttemptOutcome]):
        self.outcomes = list(outcomes)
        self.sent: List[RequestDescriptor] = []
        self.closed = False

    def send(self, descriptor: RequestDescriptor) -> AttemptOutcome:
        self.sent.append(descriptor)
        index = min(len(self.sent), len(self.outcomes)) - 1
        return self.outcomes[index]

    def close(self):
        self.closed = True


class RecordingSleep:
    """Sleep replacement recording the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float):
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()
