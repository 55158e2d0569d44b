"""Shared fixtures for deck controller tests."""

import asyncio
import copy

import pytest

SAMPLE_CONFIG = {
    "version": "1.0",
    "devices": {
        "DEV1": {
            "name": "Test Deck",
            "default_page": "main",
            "pages": {
                "main": {
                    "buttons": {
                        "0": {"text": "Go", "type": "inline_code", "code": "return 1"},
                        "1": {"text": "Bad", "type": "inline_code", "code": "raise ValueError('nope')"},
                        "2": {"text": "Huh", "type": "unknown_type"},
                        "3": {"text": "Tog", "stateful": True, "type": "inline_code", "code": "return 'on'"},
                        "4": {"text": "Plain", "color": "#112233"},
                    }
                },
                "second": {
                    "buttons": {
                        "0": {"text": "Two", "type": "inline_code", "code": "return 2"},
                    }
                },
                "third": {"buttons": {}},
            },
        },
        "DEV2": {
            "pages": {
                "home": {"buttons": {"0": {"text": "Other"}}},
            },
        },
    },
}


@pytest.fixture
def deck_config():
    """A fresh copy of the sample two-device config."""
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture(autouse=True)
def _quiet_settings(monkeypatch):
    """Keep tests independent of whatever settings file is on disk."""
    monkeypatch.setenv("DECK_SETTINGS_PATH", "tests/.missing_settings.json")
    monkeypatch.delenv("DECK_LOG_LEVEL", raising=False)
    monkeypatch.delenv("DECK_STATE_DIR", raising=False)
    from utils import settings_store

    settings_store.refresh_settings()
    yield
    settings_store.refresh_settings()


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll predicate on the running loop until it holds or timeout passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(interval)


@pytest.fixture
def until():
    return wait_until
