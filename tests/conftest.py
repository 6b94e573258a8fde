import json

import pytest
from callforward.config import RoutingConfig
from callforward.handler import CallForwarder
from callforward.routing import RoutingEngine
from callforward.store import MemoryCursorStore


@pytest.fixture
def routing_config():
    return RoutingConfig(caller_id="+15125550000", dial_timeout=15, forwarding_path="/call-forwarding")


@pytest.fixture
def engine(routing_config):
    return RoutingEngine(routing_config)


@pytest.fixture
def store():
    return MemoryCursorStore()


@pytest.fixture
def phone_numbers_file(tmp_path):
    path = tmp_path / "phone-numbers.json"
    path.write_text(json.dumps({"whitelistedNumbers": [
        {"number": "+15125550001"},
        {"number": "+15125550002"},
        {"number": "+15125550003"},
    ]}))
    return path


@pytest.fixture
def blacklist_file(tmp_path):
    path = tmp_path / "blacklist.json"
    path.write_text(json.dumps({"blacklistedNumbers": ["+15551234567"]}))
    return path


@pytest.fixture
def forwarder(engine, store, phone_numbers_file, blacklist_file):
    return CallForwarder(
        engine,
        store,
        session_key="callForwardingState",
        phone_numbers_path=str(phone_numbers_file),
        blacklist_path=str(blacklist_file),
    )
