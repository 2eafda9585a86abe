"""
Donkey Republic ETL: public parking hub endpoints
Source: https://stables.donkey.bike/api/public
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import requests

from common.fields import resolve, to_float, to_int, to_text
from common.schema import (
    HubRecord, PayloadShape, FetchErrorKind, WRAPPER_SHAPES,
    DEFAULT_HUB_TYPE, DEFAULT_HUB_STATUS,
)

logger = logging.getLogger(__name__)

USER_AGENT = "DonkeyHubProcessor/1.0"
DONKEY_V8_MEDIA_TYPE = "application/com.donkeyrepublic.v8"
REQUEST_TIMEOUT_S = 15
ERROR_BODY_LIMIT = 500

class FetchError(Exception):
    """A single endpoint request failed."""

    def __init__(self, kind: FetchErrorKind, url: str, detail: str,
                 status_code: Optional[int] = None):
        self.kind = kind
        self.url = url
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{kind.value} {url}: {detail}")

def _path_segments(url: str) -> List[str]:
    return [s for s in urlsplit(url).path.split('/') if s]

def is_city_hubs_url(url: str) -> bool:
    """True for .../cities/{id}/hubs/ style endpoints."""
    segments = _path_segments(url)
    if 'cities' not in segments:
        return False
    return 'hubs' in segments[segments.index('cities') + 1:]

def account_id_from_url(url: str) -> Optional[str]:
    """Account id of a .../nearby?filter_type=account&account_id={id} endpoint."""
    segments = _path_segments(url)
    if not segments or segments[-1] != 'nearby':
        return None
    query = parse_qs(urlsplit(url).query)
    if query.get('filter_type', [None])[0] != 'account':
        return None
    account_ids = query.get('account_id')
    if not account_ids or not account_ids[0]:
        return None
    return account_ids[0]

def select_headers(url: str) -> Dict[str, str]:
    """Pick request headers from the endpoint URL shape."""
    if is_city_hubs_url(url):
        return {
            'Accept': DONKEY_V8_MEDIA_TYPE,
            'User-Agent': USER_AGENT,
        }

    account_id = account_id_from_url(url)
    if account_id is not None:
        return {
            'Accept': 'application/json',
            'User-Agent': USER_AGENT,
            'filter_type': 'account',
            'account_id': account_id,
        }

    return {
        'Accept': 'application/json',
        'User-Agent': USER_AGENT,
    }

def fetch_hub_data(url: str, session: Optional[requests.Session] = None,
                   timeout: float = REQUEST_TIMEOUT_S) -> Any:
    """GET one endpoint and return its decoded JSON body."""
    http = session or requests
    try:
        with http.get(url, headers=select_headers(url), timeout=timeout) as response:
            if not 200 <= response.status_code < 300:
                raise FetchError(
                    FetchErrorKind.HTTP_STATUS, url,
                    f"HTTP {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )
            try:
                return response.json()
            except ValueError as e:
                raise FetchError(FetchErrorKind.PARSE_FAILURE, url, f"JSON parse error: {e}")
    except requests.exceptions.Timeout as e:
        raise FetchError(FetchErrorKind.TIMEOUT, url, f"Request timeout after {timeout}s: {e}")
    except requests.exceptions.RequestException as e:
        raise FetchError(FetchErrorKind.NETWORK_FAILURE, url, f"Request error: {e}")

def detect_shape(payload: Any) -> Tuple[PayloadShape, List[Any]]:
    """Classify a payload and return the hub list it wraps."""
    if isinstance(payload, list):
        return PayloadShape.ARRAY, payload

    if isinstance(payload, dict):
        for wrapper_key, shape in WRAPPER_SHAPES:
            value = payload.get(wrapper_key)
            if isinstance(value, list):
                return shape, value

    return PayloadShape.UNRECOGNIZED, []

def normalize_payload(payload: Any, url: str = '') -> List[Any]:
    """Extract the raw hub objects from any known payload shape."""
    shape, hubs = detect_shape(payload)
    if shape == PayloadShape.UNRECOGNIZED:
        logger.warning("Unexpected data format from %s (%s); returning no hubs",
                       url or 'payload', type(payload).__name__)
    return hubs

def transform_hub_record(raw: Any, city_name: str) -> Optional[HubRecord]:
    """Transform a raw hub object to HubRecord, or None if it cannot be placed.

    A hub without id is kept with id None; dedupe then keeps only the first.
    """
    if not isinstance(raw, dict):
        return None

    lat = to_float(resolve(raw, 'latitude'))
    lon = to_float(resolve(raw, 'longitude'))
    if lat is None or lon is None:
        return None

    hub_id = resolve(raw, 'id')
    if isinstance(hub_id, (dict, list, bool)):
        hub_id = None
    if isinstance(hub_id, float) and hub_id.is_integer():
        hub_id = int(hub_id)

    city = resolve(raw, 'city')
    if not isinstance(city, (str, int)):
        city = None

    return HubRecord(
        id=hub_id,
        name=to_text(resolve(raw, 'name'), "Hub" if hub_id is None else f"Hub {hub_id}"),
        address=to_text(resolve(raw, 'address')),
        city=to_text(city, city_name),
        capacity=to_int(resolve(raw, 'capacity')),
        available=to_int(resolve(raw, 'available')),
        type=to_text(resolve(raw, 'type'), DEFAULT_HUB_TYPE),
        status=to_text(resolve(raw, 'status'), DEFAULT_HUB_STATUS),
        longitude=lon,
        latitude=lat,
    )

def transform_payload(payload: Any, city_name: str, url: str = '') -> List[HubRecord]:
    """Full ETL for one decoded payload."""
    hubs = []
    skipped = 0
    for raw in normalize_payload(payload, url):
        hub = transform_hub_record(raw, city_name)
        if hub is None:
            skipped += 1
            continue
        hubs.append(hub)

    if skipped:
        logger.debug("  Skipped %d hubs without usable coordinates from %s", skipped, url)
    return hubs
