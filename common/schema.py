"""
Unified Schema for Donkey Republic Parking Hubs
Harmonises the differing hub payloads returned by the public API.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Union
from enum import Enum
from datetime import datetime, timezone

HubId = Optional[Union[int, str]]

class PayloadShape(Enum):
    ARRAY = "ARRAY"
    WRAPPED_HUBS = "WRAPPED_HUBS"
    WRAPPED_DATA = "WRAPPED_DATA"
    WRAPPED_RESULTS = "WRAPPED_RESULTS"
    WRAPPED_STATIONS = "WRAPPED_STATIONS"
    UNRECOGNIZED = "UNRECOGNIZED"

class FetchErrorKind(Enum):
    TIMEOUT = "TIMEOUT"
    HTTP_STATUS = "HTTP_STATUS"
    PARSE_FAILURE = "PARSE_FAILURE"
    NETWORK_FAILURE = "NETWORK_FAILURE"

class OutputFormat(Enum):
    GEOJSON = "geojson"
    ARRAY = "array"

# Wrapper keys checked in priority order, after the bare-array case
WRAPPER_SHAPES: Tuple[Tuple[str, PayloadShape], ...] = (
    ('hubs', PayloadShape.WRAPPED_HUBS),
    ('data', PayloadShape.WRAPPED_DATA),
    ('results', PayloadShape.WRAPPED_RESULTS),
    ('stations', PayloadShape.WRAPPED_STATIONS),
)

DEFAULT_HUB_TYPE = 'standard'
DEFAULT_HUB_STATUS = 'active'

@dataclass(frozen=True)
class City:
    """A registry entry: output name plus the endpoints queried for it."""
    name: str
    endpoints: Tuple[str, ...]

@dataclass
class HubRecord:
    """Canonical parking hub record."""

    id: HubId
    name: str
    longitude: float
    latitude: float
    address: str = ''
    city: str = ''
    capacity: int = 0
    available: int = 0
    type: str = DEFAULT_HUB_TYPE
    status: str = DEFAULT_HUB_STATUS

    def to_properties(self) -> dict:
        """GeoJSON property block."""
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'city': self.city,
            'capacity': self.capacity,
            'available_bikes': self.available,
            'hub_type': self.type,
            'status': self.status,
        }

    def to_feature(self) -> dict:
        return {
            'type': 'Feature',
            'geometry': {
                'type': 'Point',
                'coordinates': [self.longitude, self.latitude],  # GeoJSON order
            },
            'properties': self.to_properties(),
        }

    def to_dict(self) -> dict:
        """Convert to a flat dictionary for DataFrame/array export."""
        record = self.to_properties()
        record['longitude'] = self.longitude
        record['latitude'] = self.latitude
        return record

@dataclass
class CityResult:
    """Deduplicated hubs for one city plus run metadata."""

    city: City
    hubs: List[HubRecord] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    failed_endpoints: List[str] = field(default_factory=list)
    output_path: Optional[str] = None

    @property
    def total_hubs(self) -> int:
        return len(self.hubs)

    def to_geojson(self) -> dict:
        return {
            'type': 'FeatureCollection',
            'features': [hub.to_feature() for hub in self.hubs],
            'metadata': {
                'city': self.city.name,
                'total_hubs': self.total_hubs,
                'generated_at': self.generated_at.isoformat(),
                'endpoints': list(self.city.endpoints),
            },
        }

    def to_array(self) -> List[dict]:
        return [hub.to_dict() for hub in self.hubs]

def output_filename(city_name: str) -> str:
    """Deterministic per-city output file name."""
    return f"hubs-{city_name}.json"
