"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from src.telemetry.metrics import TelemetryMetrics  # noqa: E402

T0 = 1_700_000_000_000  # fixed epoch ms for deterministic clocks


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """Deterministic clock starting at T0."""
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's environment and home directory."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}",
        admin_email="head@school.test",
        watermark_path=tmp_path / "channel_last_seen.json",
        log_file=None,
    )


@pytest.fixture
def make_metrics():
    """Factory for metrics summaries."""

    def _make(paste_count=0, engagement_time=0, keystrokes=0, click_count=0):
        return TelemetryMetrics(
            paste_count=paste_count,
            engagement_time=engagement_time,
            keystrokes=keystrokes,
            click_count=click_count,
            start_time=T0,
            last_active=T0,
        )

    return _make


@pytest.fixture
def sample_bank():
    """Provide a small review-question bank."""
    return [
        {
            "id": "t1q001",
            "tier": 1,
            "xp": 10,
            "type": "multiple_choice",
            "bloomsLevel": "remember",
            "stem": "What is the SI unit of force?",
            "options": [
                {"id": "a", "text": "Joule"},
                {"id": "b", "text": "Newton"},
                {"id": "c", "text": "Watt"},
                {"id": "d", "text": "Pascal"},
            ],
            "correctAnswer": "b",
            "explanation": "Force is measured in newtons.",
        },
        {
            "id": "t2q001",
            "tier": 2,
            "xp": 25,
            "type": "multiple_select",
            "stem": "Which quantities are vectors?",
            "options": [
                {"id": "a", "text": "Velocity"},
                {"id": "b", "text": "Mass"},
                {"id": "c", "text": "Force"},
            ],
            "correctAnswer": ["a", "c"],
            "explanation": "Velocity and force have direction.",
        },
    ]
