"""
Field Resolution Utilities for Hub Payloads
Alias chains: each canonical field is read from the first source key that has a value.
"""
import math
from typing import Any, Callable, Dict, Optional, Sequence

Accessor = Callable[[dict], Any]

def key(name: str) -> Accessor:
    """Accessor for a top-level key."""
    return lambda record: record.get(name)

def nested(*path: str) -> Accessor:
    """Accessor for a dotted path such as position.latitude."""
    def get(record: dict) -> Any:
        value: Any = record
        for part in path:
            if not isinstance(value, dict):
                return None
            value = value.get(part)
        return value
    return get

def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())

def first_present(record: dict, accessors: Sequence[Accessor], default: Any = None) -> Any:
    """Return the first non-missing value produced by the accessors."""
    for accessor in accessors:
        value = accessor(record)
        if not is_missing(value):
            return value
    return default

def to_float(value: Any) -> Optional[float]:
    """Parse a coordinate; None when not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number

def to_int(value: Any, default: int = 0) -> int:
    """Parse a count, falling back to default for unusable values."""
    number = to_float(value)
    if number is None:
        return default
    return int(number)

def to_text(value: Any, default: str = '') -> str:
    if is_missing(value):
        return default
    return str(value)

# Alias chains for raw hub objects, in resolution order
HUB_FIELD_ALIASES: Dict[str, Sequence[Accessor]] = {
    'id': (key('id'), key('hub_id')),
    'name': (key('name'), key('title')),
    'address': (key('address'), key('street_address')),
    'latitude': (key('latitude'), key('lat'), nested('position', 'latitude')),
    'longitude': (key('longitude'), key('lng'), key('lon'), nested('position', 'longitude')),
    'capacity': (key('capacity'), key('bike_capacity')),
    'available': (key('available_bikes'), key('bikes_available')),
    'type': (key('hub_type'),),
    'status': (key('status'),),
    'city': (nested('city', 'name'), key('city')),
}

def resolve(record: dict, field_name: str, default: Any = None) -> Any:
    """Resolve a canonical hub field from a raw record."""
    return first_present(record, HUB_FIELD_ALIASES[field_name], default)
