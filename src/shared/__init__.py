"""Shared utilities for store locator collection"""

from .brands import Brand, load_brands, validate_brands_config
from .http import (
    AllAttemptsFailed,
    HttpStatusError,
    InvalidJsonError,
    LocatorError,
    TransportError,
    create_session,
    fetch_html,
    get_headers,
)
from .location_schema import RawLocation, compute_location_key
from .logging_config import setup_logging
from .persistence import InMemoryLocationStore, JsonLocationStore, LocationStore
from .trust import TrustRejected, validate_locations_trust

__all__ = [
    'AllAttemptsFailed',
    'Brand',
    'HttpStatusError',
    'InMemoryLocationStore',
    'InvalidJsonError',
    'JsonLocationStore',
    'LocationStore',
    'LocatorError',
    'RawLocation',
    'TransportError',
    'TrustRejected',
    'compute_location_key',
    'create_session',
    'fetch_html',
    'get_headers',
    'load_brands',
    'setup_logging',
    'validate_brands_config',
    'validate_locations_trust',
]
