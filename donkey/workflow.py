"""
Donkey Republic Hub Workflow
Fetches every registry city, deduplicates hubs and writes one file per city.
"""
import json
import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import pandas as pd
import requests

from common.schema import City, CityResult, HubRecord, OutputFormat, output_filename
from donkey.etl_donkey import (
    ERROR_BODY_LIMIT, FetchError, REQUEST_TIMEOUT_S, fetch_hub_data, transform_payload,
)

logger = logging.getLogger(__name__)

OUTPUT_DIR = Path('hub-data')
REQUEST_DELAY_S = 0.2  # between cities, to stay polite with the API

def dedupe_hubs(hubs: Iterable[HubRecord]) -> List[HubRecord]:
    """Drop repeated hub ids, keeping the first occurrence in order."""
    seen_ids = set()
    unique = []
    for hub in hubs:
        if hub.id in seen_ids:
            continue
        seen_ids.add(hub.id)
        unique.append(hub)
    return unique

def write_city_result(result: CityResult, output_dir: Union[str, Path] = OUTPUT_DIR,
                      output_format: OutputFormat = OutputFormat.GEOJSON) -> Path:
    """Write (overwrite) the city file and return its path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / output_filename(result.city.name)

    if output_format == OutputFormat.ARRAY:
        document = result.to_array()
    else:
        document = result.to_geojson()

    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2, ensure_ascii=False)
        f.write('\n')

    result.output_path = str(filepath)
    return filepath

class DonkeyHubWorkflow:
    """Orchestrates the per-city hub extraction."""

    def __init__(self, cities: Sequence[City], output_dir: Union[str, Path] = OUTPUT_DIR,
                 output_format: OutputFormat = OutputFormat.GEOJSON,
                 request_delay: float = REQUEST_DELAY_S,
                 timeout: float = REQUEST_TIMEOUT_S,
                 session: Optional[requests.Session] = None):
        self.cities = list(cities)
        self.output_dir = Path(output_dir)
        self.output_format = output_format
        self.request_delay = request_delay
        self.timeout = timeout
        self.session = session
        self.results: List[CityResult] = []

    def extract_endpoint(self, url: str, city_name: str) -> List[HubRecord]:
        """Fetch and transform one endpoint; failures yield no hubs."""
        payload = fetch_hub_data(url, session=self.session, timeout=self.timeout)
        hubs = transform_payload(payload, city_name, url)
        logger.info("  - Found %d hubs from %s", len(hubs), url)
        return hubs

    def process_city(self, city: City) -> CityResult:
        """Collect and deduplicate hubs from every endpoint of a city."""
        logger.info("Processing %s...", city.name)
        result = CityResult(city=city)
        all_hubs: List[HubRecord] = []

        for endpoint in city.endpoints:
            try:
                all_hubs.extend(self.extract_endpoint(endpoint, city.name))
            except FetchError as e:
                logger.error("  - Error with %s: %s", endpoint, e.detail[:ERROR_BODY_LIMIT])
                result.failed_endpoints.append(endpoint)

        result.hubs = dedupe_hubs(all_hubs)
        return result

    def prepare_output_dir(self):
        """Create the output directory; failure here is fatal."""
        if not self.output_dir.exists():
            self.output_dir.mkdir(parents=True)
            logger.info("Created %s directory", self.output_dir)
        if not self.output_dir.is_dir():
            raise NotADirectoryError(f"Output path is not a directory: {self.output_dir}")

    def run_full_workflow(self) -> List[CityResult]:
        """Run the complete pass over all cities."""
        logger.info("Starting Donkey Republic hub data processing (%d cities)...", len(self.cities))
        self.prepare_output_dir()

        self.results = []
        total_hubs = 0

        for i, city in enumerate(self.cities):
            if i and self.request_delay > 0:
                time.sleep(self.request_delay)

            try:
                result = self.process_city(city)
                filepath = write_city_result(result, self.output_dir, self.output_format)
            except OSError as e:
                logger.error("Could not write hubs for %s: %s", city.name, e)
                continue
            except Exception:
                logger.exception("Unexpected error processing %s", city.name)
                continue

            self.results.append(result)
            total_hubs += result.total_hubs
            logger.info("  Saved %d unique hubs to %s", result.total_hubs, filepath.name)

        logger.info("Processing complete! Total hubs processed: %d", total_hubs)
        return self.results

    def export_to_dataframe(self) -> pd.DataFrame:
        """Export all processed hubs to pandas DataFrame, one row per hub."""
        records = []
        for result in self.results:
            for hub in result.hubs:
                record = hub.to_dict()
                record['registry_city'] = result.city.name
                records.append(record)

        columns = ['registry_city', 'id', 'name', 'address', 'city', 'capacity',
                   'available_bikes', 'hub_type', 'status', 'longitude', 'latitude']
        return pd.DataFrame(records, columns=columns)
