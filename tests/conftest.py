import asyncio
from collections import deque

import pytest

from relay_ranker.config import get_settings
from relay_ranker.models.ranking import ProbeOutcome
from relay_ranker.models.relay import Relay
from relay_ranker.services.transport import ProbeTransport


class FakeTransport(ProbeTransport):
    """
    script: dict[address] -> list of RTTs (int) or None for a failed probe.
    delays: optional dict[address] -> seconds to sleep before answering.
    If no scripted value is left, the probe fails.
    """

    def __init__(self, script=None, delays=None):
        self.script = {address: deque(values) for address, values in (script or {}).items()}
        self.delays = delays or {}
        self.calls = []
        self.completed = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def probe(self, address: str) -> ProbeOutcome:
        self.calls.append(address)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(address, 0))
            dq = self.script.get(address)
            value = dq.popleft() if dq else None
            self.completed.append(address)
        finally:
            self.in_flight -= 1
        if value is None:
            return ProbeOutcome(error="timeout")
        return ProbeOutcome(rtt_ms=value)


def make_relay(hostname: str, address: str, **kwargs) -> Relay:
    data = {
        "hostname": hostname,
        "ipv4_addr_in": address,
        "type": "wireguard",
        "active": True,
    }
    data.update(kwargs)
    return Relay.model_validate(data)


@pytest.fixture
def fake_transport_cls():
    return FakeTransport


@pytest.fixture
def relay_factory():
    return make_relay


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
