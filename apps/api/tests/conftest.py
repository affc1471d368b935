"""
Pytest configuration and fixtures.

No test touches a real database, broker, Redis or network: sessions are
MagicMocks and external calls are patched.
"""
import os
import sys
from unittest.mock import MagicMock

import pytest

# Add the API root to the path so we can import services, routers, ...
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("ENVIRONMENT", "test")


@pytest.fixture
def mock_db():
    """A SQLAlchemy Session stand-in."""
    return MagicMock()


@pytest.fixture
def hot_humid_weather():
    from fixtures.stream_fixtures import make_hourly_weather
    return make_hourly_weather(temperature_c=33.0, humidity_percent=88.0)


@pytest.fixture
def cool_weather():
    from fixtures.stream_fixtures import make_hourly_weather
    return make_hourly_weather(temperature_c=12.0, humidity_percent=50.0)
