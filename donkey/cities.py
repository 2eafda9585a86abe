"""
Donkey Republic City Registry
Output city name -> ordered list of public API endpoints.
"""
import json
from pathlib import Path
from typing import List, Tuple, Union

from common.schema import City

DONKEY_API_BASE = "https://stables.donkey.bike/api/public"

def city_hubs_url(city_id: int) -> str:
    return f"{DONKEY_API_BASE}/cities/{city_id}/hubs/"

def account_nearby_url(account_id: int) -> str:
    return f"{DONKEY_API_BASE}/nearby?filter_type=account&account_id={account_id}"

# South Holland cities share the same three Donkey city ids
_SOUTH_HOLLAND = (city_hubs_url(645), city_hubs_url(644), city_hubs_url(643))

CITY_REGISTRY: Tuple[City, ...] = (
    # Belgium
    City('antwerp-mechelen-waasland', (account_nearby_url(803),)),
    City('de-panne', (city_hubs_url(561),)),
    City('ghent', (city_hubs_url(223),)),
    City('koksijde', (city_hubs_url(8),)),
    City('veurne', (city_hubs_url(475),)),
    # Denmark
    City('aarhus', (city_hubs_url(205),)),
    City('copenhagen', (city_hubs_url(1),)),
    City('randers', (city_hubs_url(308),)),
    City('roskilde', (city_hubs_url(19),)),
    # Finland
    City('kouvola', (city_hubs_url(208),)),
    City('turku', (city_hubs_url(345),)),
    # Germany
    City('hanover', (city_hubs_url(592), city_hubs_url(723))),
    City('kiel-region', (account_nearby_url(866),)),
    City('ochtrup', (city_hubs_url(350),)),
    City('schlei-region', (account_nearby_url(866), city_hubs_url(516))),
    City('straubing', (city_hubs_url(336),)),
    # Netherlands
    City('amsterdam', (city_hubs_url(5),)),
    City('dordrecht', (city_hubs_url(355),)),
    City('katwijk', _SOUTH_HOLLAND),
    City('leiden', _SOUTH_HOLLAND),
    City('oegstgeest', _SOUTH_HOLLAND),
    City('rotterdam', (city_hubs_url(21),)),
    City('the-hague', (city_hubs_url(306),)),
    # Spain
    City('barcelona', (city_hubs_url(1),)),
    # Sweden
    City('varberg', (city_hubs_url(315),)),
    # Switzerland
    City('geneva', (city_hubs_url(217),)),
    City('kreuzlingen', (city_hubs_url(304),)),
    City('lausanne-epfl', (city_hubs_url(53),)),
    City('neuchatel', (city_hubs_url(142),)),
    City('thun', (city_hubs_url(242),)),
    City('yverdon-les-bains', (city_hubs_url(240),)),
)

def parse_cities(entries: list) -> List[City]:
    """Build City records from decoded JSON entries."""
    if not isinstance(entries, list):
        raise ValueError("City registry must be a JSON list")

    cities = []
    seen = set()
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"City entry {i} is not an object")
        name = entry.get('name')
        endpoints = entry.get('endpoints')
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"City entry {i} has no name")
        if name in seen:
            raise ValueError(f"Duplicate city name: {name}")
        if not isinstance(endpoints, list) or not all(isinstance(e, str) for e in endpoints):
            raise ValueError(f"City {name} must have a list of endpoint URLs")
        seen.add(name)
        cities.append(City(name, tuple(endpoints)))
    return cities

def load_cities(path: Union[str, Path]) -> List[City]:
    """Load a substitute registry from a JSON file."""
    with open(path, encoding='utf-8') as f:
        return parse_cities(json.load(f))

def filter_cities(cities, names) -> List[City]:
    """Keep only the named cities, in registry order."""
    wanted = set(names)
    known = {city.name for city in cities}
    unknown = sorted(wanted - known)
    if unknown:
        raise ValueError(f"Unknown city: {', '.join(unknown)}")
    return [city for city in cities if city.name in wanted]
