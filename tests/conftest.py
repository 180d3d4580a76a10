"""
Pytest configuration for execgate tests — validates the environment,
registers markers, and provides shared approval fixtures.
"""

import sys
from typing import Any

import pytest

from execgate.approvals import ApprovalHandlers, ApprovalStore
from execgate.config.settings import ApprovalsConfig

# =============================================================================
# SHARED FIXTURES
# =============================================================================


class FakeClock:
    """Settable wall clock in epoch milliseconds."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class BroadcastRecorder:
    """Collects broadcast(event, payload) calls in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    s = ApprovalStore(clock=clock)
    yield s
    s.expire_all()


@pytest.fixture
def handlers(store):
    return ApprovalHandlers(store, ApprovalsConfig())


@pytest.fixture
def broadcasts():
    return BroadcastRecorder()


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Validate test environment and register custom markers."""
    missing = []
    for mod in ("pydantic", "pydantic_settings", "yaml", "pytest_asyncio"):
        try:
            __import__(mod)
        except ImportError:
            missing.append(mod)

    if missing:
        print(
            "\n"
            + "=" * 70 + "\n"
            " TEST ENVIRONMENT ERROR\n"
            + "=" * 70 + "\n"
            f"\n"
            f" Missing dependencies: {', '.join(missing)}\n"
            f"\n"
            f" Run: pip install -e '.[dev]'\n"
            + "=" * 70,
            file=sys.stderr,
        )
        raise SystemExit(1)

    config.addinivalue_line(
        "markers", "unit: Fast unit tests with no external dependencies"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds"
    )
