"""Pytest configuration and fixtures for locator tests"""

import sys
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
import requests
from unittest.mock import Mock

from src.locators.base import LocatorContext
from src.shared.app_config import AppConfig
from src.shared.brands import Brand
from src.shared.location_schema import RawLocation


@pytest.fixture
def mock_response_factory():
    """Factory for creating mock HTTP responses.

    Usage:
        response = mock_response_factory(status_code=200, json_data={"key": "value"})
        response = mock_response_factory(status_code=404, text="Not Found")
    """
    def _create_response(
        status_code: int = 200,
        text: str = "",
        json_data=None,
        headers: Optional[dict] = None,
    ):
        response = Mock()
        response.status_code = status_code
        response.text = text
        response.headers = headers or {}
        response.content = text.encode('utf-8') if text else b''

        if json_data is not None:
            response.json.return_value = json_data
        else:
            response.json.side_effect = ValueError("No JSON data")
        return response

    return _create_response


@pytest.fixture
def mock_session():
    """A requests.Session mock with no canned responses."""
    session = Mock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def locator_context(mock_session):
    """LocatorContext over the mock session with curl disabled."""
    return LocatorContext(
        locator_url="https://acme.com/pages/where-to-buy",
        session=mock_session,
        timeout=10,
        user_agent="test-agent/1.0",
        use_curl=False,
        brand_slug="acme",
    )


@pytest.fixture
def settings():
    """AppConfig for tests: curl off, sequential brands."""
    return AppConfig(request_timeout_secs=10, user_agent="test-agent/1.0", use_curl=False)


@pytest.fixture
def acme_brand():
    return Brand(id=42, slug="acme", name="Acme", domain="acme.com")


def make_location(name: str = "Acme Downtown", source: str = "jsonld", **kwargs) -> RawLocation:
    """Build a RawLocation with a full address unless overridden."""
    fields = {
        'address_line1': "1 Main St",
        'city': "Springfield",
        'state': "IL",
        'zip': "62701",
    }
    fields.update(kwargs)
    return RawLocation(name=name, locator_source=source, **fields)


@pytest.fixture
def location_factory():
    return make_location
