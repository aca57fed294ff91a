import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fleetsync.channel.notifications import NotificationCenter
from fleetsync.store.device_store import DeviceStore
from fleetsync.store.progress import ProgressTracker
from tests.fakes import ManualScheduler, make_device


@pytest.fixture
def store():
    return DeviceStore(history_limit=5)


@pytest.fixture
def fleet(store):
    """Store preloaded with three devices of mixed telemetry"""
    store.upsert_full(make_device("d1", model="Quest 3", ip="10.0.0.12", battery=80, volume=40))
    store.upsert_full(make_device("d2", model="Quest 2", ip="10.0.0.2", custom_name="Lobby"))
    store.upsert_full(make_device("d3", model="Pico 4", ip="10.0.0.30", battery=15, volume=100,
                                  is_connected=False))
    return store


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def tracker(store, scheduler):
    return ProgressTracker(store, scheduler, clear_delay=2.0)


@pytest.fixture
def notifications():
    return NotificationCenter(history_limit=20)


@pytest.fixture
def mock_agent_payload():
    return {
        "info": {
            "id": "d9",
            "model": "Quest 3",
            "serial": "SN-d9",
            "ip": "10.0.0.9",
            "customName": None,
            "connectedAt": "2025-10-03T12:00:00Z",
            "lastSeen": "2025-10-03T12:00:00Z",
        },
        "battery": None,
        "volume": None,
        "commandHistory": [],
        "isConnected": True,
    }
