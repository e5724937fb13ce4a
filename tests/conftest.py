import pytest

from helpers import FakeClock, FakeWorkOSClient


@pytest.fixture
def fake_client():
    return FakeWorkOSClient()


@pytest.fixture
def fake_clock():
    return FakeClock()
