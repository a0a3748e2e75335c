"""
Location Schema - Raw location records, tolerant field access and identity keys.

Every extraction strategy produces RawLocation records. Vendors spell the
same field many ways (``lat`` / ``latitude`` / ``Lat``, numbers as JSON
numbers or strings), so each strategy declares an ordered alias table and
the accessors below return the first value that parses.
"""

import hashlib
import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple


__all__ = [
    'FieldAliases',
    'RawLocation',
    'compute_location_key',
    'first_float',
    'first_id',
    'first_str',
    'identity_fields',
    'map_location',
]


# =============================================================================
# RAW LOCATION
# =============================================================================

def _clean_str(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _clean_float(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


@dataclass
class RawLocation:
    """A store location as extracted from a locator, before persistence.

    Normalised on construction:
    - string fields are trimmed and empty strings become None
    - ``name`` must be non-empty after trimming (ValueError otherwise)
    - NaN/inf coordinates become None
    - latitude and longitude are kept only as a pair
    """
    name: str
    locator_source: str
    external_id: Optional[str] = None
    address_line1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        self.name = _clean_str(self.name)
        if not self.name:
            raise ValueError("RawLocation.name must be non-empty")

        for name in ('external_id', 'address_line1', 'city', 'state', 'zip', 'country', 'phone'):
            setattr(self, name, _clean_str(getattr(self, name)))

        self.latitude = _clean_float(self.latitude)
        self.longitude = _clean_float(self.longitude)
        if self.latitude is None or self.longitude is None:
            self.latitude = None
            self.longitude = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dict (raw_data included)."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============================================================================
# TOLERANT FIELD ACCESS
# =============================================================================

def first_str(obj: Mapping[str, Any], keys: Sequence[str]) -> Optional[str]:
    """Return the first non-empty string value among ``keys``.

    Integers are accepted too (postal codes and ids often arrive unquoted);
    booleans never are.
    """
    for key in keys:
        value = obj.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, str):
            value = value.strip()
            if value:
                return value
        elif isinstance(value, int):
            return str(value)
    return None


def first_float(obj: Mapping[str, Any], keys: Sequence[str]) -> Optional[float]:
    """Return the first finite number among ``keys``, parsing numeric strings."""
    for key in keys:
        value = obj.get(key)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                continue
        else:
            continue
        if not (math.isnan(number) or math.isinf(number)):
            return number
    return None


def first_id(obj: Mapping[str, Any], keys: Sequence[str]) -> Optional[str]:
    """Return the first id-like value (string or number) among ``keys``."""
    for key in keys:
        value = obj.get(key)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, str):
            if value.strip():
                return value.strip()
        elif isinstance(value, (int, float)):
            return str(value)
    return None


# Alias table: RawLocation field -> ordered source keys
FieldAliases = Dict[str, Tuple[str, ...]]


def map_location(obj: Any, aliases: FieldAliases, source: str) -> Optional[RawLocation]:
    """Map one vendor object to a RawLocation using an alias table.

    Fields missing from ``aliases`` are left empty. Returns None when the
    object is not a dict or has no usable name.

    Args:
        obj: Decoded JSON object from the vendor
        aliases: Ordered keys to try for each RawLocation field
        source: locator_source tag for the record
    """
    if not isinstance(obj, dict):
        return None

    name = first_str(obj, aliases.get('name', ('name',)))
    if not name:
        return None

    return RawLocation(
        name=name,
        locator_source=source,
        external_id=first_id(obj, aliases.get('external_id', ())),
        address_line1=first_str(obj, aliases.get('address_line1', ())),
        city=first_str(obj, aliases.get('city', ())),
        state=first_str(obj, aliases.get('state', ())),
        zip=first_str(obj, aliases.get('zip', ())),
        country=first_str(obj, aliases.get('country', ())),
        latitude=first_float(obj, aliases.get('latitude', ())),
        longitude=first_float(obj, aliases.get('longitude', ())),
        phone=first_str(obj, aliases.get('phone', ())),
        raw_data=obj,
    )


# =============================================================================
# IDENTITY
# =============================================================================

def identity_fields(location: RawLocation) -> Tuple[str, str, str, str]:
    """Normalised (name, city, state, zip) tuple behind the location key.

    Brand-independent, so strategies use it to de-duplicate sweep results.
    """
    return (
        location.name.lower().strip(),
        (location.city or "").strip().lower(),
        (location.state or "").strip().upper(),
        (location.zip or "").strip(),
    )


def compute_location_key(brand_id: int, location: RawLocation) -> str:
    """Stable identity key for a location within a brand.

    SHA-256 (hex) over brand id, lowercased name and city, uppercased state
    and zip, NUL-separated. Case and surrounding whitespace never change
    the key; any change to the name, city, state or zip does.
    """
    name, city, state, zip_code = identity_fields(location)
    payload = f"{brand_id}\x00{name}\x00{city}\x00{state}\x00{zip_code}"
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()
