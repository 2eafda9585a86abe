#!/usr/bin/env python3
"""
Donkey Republic Hub Data Pipeline
Main runner: fetches every registry city and writes hub-data/hubs-<city>.json.
"""
import sys
import argparse
import logging
from datetime import datetime

from common.schema import OutputFormat
from donkey.cities import CITY_REGISTRY, filter_cities, load_cities
from donkey.etl_donkey import REQUEST_TIMEOUT_S
from donkey.workflow import DonkeyHubWorkflow, OUTPUT_DIR, REQUEST_DELAY_S

logger = logging.getLogger(__name__)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Donkey Republic Hub Data Pipeline')
    parser.add_argument('--output-dir', default=str(OUTPUT_DIR),
                        help='Directory receiving hubs-<city>.json files')
    parser.add_argument('--cities', default=None,
                        help='JSON file replacing the built-in city registry')
    parser.add_argument('--city', action='append', default=None,
                        help='Only process this city (repeatable)')
    parser.add_argument('--format', choices=[f.value for f in OutputFormat],
                        default=OutputFormat.GEOJSON.value,
                        help='Output file shape')
    parser.add_argument('--delay', type=float, default=REQUEST_DELAY_S,
                        help='Seconds to wait between cities')
    parser.add_argument('--timeout', type=float, default=REQUEST_TIMEOUT_S,
                        help='Per-request timeout in seconds')
    parser.add_argument('--summary-csv', default=None,
                        help='Also write all hubs to this CSV file')
    parser.add_argument('--verbose', action='store_true',
                        help='Debug logging')
    return parser

def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    logger.info("DONKEY HUB DATA PIPELINE started %s", datetime.now().isoformat())

    try:
        cities = load_cities(args.cities) if args.cities else list(CITY_REGISTRY)
        if args.city:
            cities = filter_cities(cities, args.city)
    except (OSError, ValueError) as e:
        logger.error("Could not load city registry: %s", e)
        return 1

    workflow = DonkeyHubWorkflow(
        cities,
        output_dir=args.output_dir,
        output_format=OutputFormat(args.format),
        request_delay=args.delay,
        timeout=args.timeout,
    )

    try:
        results = workflow.run_full_workflow()
    except OSError as e:
        logger.error("Cannot prepare output directory %s: %s", args.output_dir, e)
        return 1

    if args.summary_csv:
        df = workflow.export_to_dataframe()
        try:
            df.to_csv(args.summary_csv, index=False)
        except OSError as e:
            logger.error("Could not write summary %s: %s", args.summary_csv, e)
            return 1
        logger.info("Exported %d records to %s", len(df), args.summary_csv)

    failed = [r.city.name for r in results if r.failed_endpoints]
    if failed:
        logger.warning("Cities with failed endpoints: %s", ', '.join(failed))

    logger.info("PIPELINE COMPLETE: %d cities written, finished %s",
                len(results), datetime.now().isoformat())
    return 0

if __name__ == '__main__':
    sys.exit(main())
