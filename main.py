#!/usr/bin/env python3
"""
Rental Finder — Main Entry Point

Fetches listings from the hosted backend, filters and sorts them locally
(including distance from you), and writes a map + list dashboard.

Usage:
    python main.py --demo                                # Sample Bangalore data, no backend needed
    python main.py --college "Christ University" --max-price 15000
    python main.py --near 12.9346,77.6061 --max-distance 3 --sort distance
    python main.py --locate --gender girls --type pg --open

Environment Variables:
    LISTINGS_BACKEND_URL    — backend project URL
    LISTINGS_BACKEND_KEY    — public (anon) API key
"""

import argparse
import asyncio
import logging
import os
import random
import sys
import webbrowser
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from config import AppConfig
from dashboard_generator import generate_dashboard
from fetchers import BackendClient, DataSourceError, PropertyFetcher
from filters import FilterSpec
from geo import GeoPoint, format_distance
from geolocation import FixedLocationProvider, IPGeolocationProvider, LocationProvider, locate
from map_sync import marker_label
from models import Listing, MediaItem
from search import load_listings, search
from sorting import SortKey, parse_sort_key

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def generate_demo_data(colleges: list[str]) -> list[Listing]:
    """Generate realistic sample data for trying the search without a backend."""
    localities = [
        ("Koramangala",     12.9352, 77.6245, 9000, 22000),
        ("Indiranagar",     12.9784, 77.6408, 12000, 30000),
        ("HSR Layout",      12.9116, 77.6389, 8000, 20000),
        ("Jayanagar",       12.9308, 77.5838, 7000, 18000),
        ("BTM Layout",      12.9166, 77.6101, 6000, 15000),
        ("Banashankari",    12.9255, 77.5468, 6000, 14000),
        ("Hosur Road",      12.9121, 77.6446, 7000, 16000),
        ("Electronic City", 12.8452, 77.6602, 5000, 12000),
        ("Malleswaram",     13.0035, 77.5709, 9000, 21000),
        ("Whitefield",      12.9698, 77.7500, 8000, 24000),
    ]
    streets = ["1st Main", "4th Cross", "80 Feet Road", "100 Feet Road", "17th Main", "Outer Ring Road"]

    listings = []
    for i, (name, lat, lng, low, high) in enumerate(localities):
        for j in range(random.randint(2, 4)):
            bedrooms = random.choice([1, 1, 2, 2, 3])
            property_type = random.choice(["rental", "rental", "pg"])
            available = date.today() + timedelta(days=random.randint(-10, 60))
            created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 45))
            unlocated = random.random() < 0.1

            listings.append(Listing(
                id=f"demo_{i}_{j}",
                title=f"{bedrooms} BHK {'PG' if property_type == 'pg' else 'flat'} in {name}",
                address=f"{random.randint(1, 400)}, {random.choice(streets)}, {name}, Bangalore",
                description=f"Well-ventilated {bedrooms} BHK close to the {name} bus stop.",
                price=float(random.randrange(low, high, 500)),
                bedrooms=bedrooms,
                bathrooms=random.choice([1, 1, 2]),
                square_feet=random.randint(450, 1600),
                deposit_amount=float(random.choice([2, 3, 6]) * low),
                available_from=available.isoformat(),
                created_at=created.isoformat(),
                property_type=property_type,
                gender_preference=random.choice(["boys", "girls", "any"]) if property_type == "pg" else "any",
                floor_number=random.randint(0, 6),
                has_hall=random.random() > 0.3,
                has_separate_kitchen=random.random() > 0.4,
                is_furnished=random.random() > 0.5,
                has_ac=random.random() > 0.7,
                has_wifi=random.random() > 0.4,
                has_gym=random.random() > 0.85,
                nearby_college=random.choice(colleges),
                latitude=None if unlocated else lat + random.uniform(-0.01, 0.01),
                longitude=None if unlocated else lng + random.uniform(-0.01, 0.01),
                media=[MediaItem(f"https://picsum.photos/seed/{i}{j}/640/360")],
            ))

    return listings


def build_spec(args: argparse.Namespace) -> FilterSpec:
    params = {
        "min_price": args.min_price,
        "max_price": args.max_price,
        "min_bedrooms": args.min_bedrooms,
        "max_bedrooms": args.max_bedrooms,
        "min_bathrooms": args.min_bathrooms,
        "has_hall": args.hall,
        "has_separate_kitchen": args.kitchen,
        "property_type": args.type,
        "gender_preference": args.gender,
        "colleges": args.college,
        "text": args.text,
        "available_from": args.available_from,
    }
    return FilterSpec.from_params({k: v for k, v in params.items() if v is not None})


def resolve_location(args: argparse.Namespace, config: AppConfig) -> Optional[GeoPoint]:
    provider: Optional[LocationProvider] = None
    if args.near:
        try:
            provider = FixedLocationProvider(GeoPoint.parse(args.near))
        except ValueError as e:
            logger.warning(f"Ignoring --near: {e}")
    elif args.locate:
        provider = IPGeolocationProvider(config.geolocation.ip_lookup_url, config.geolocation.timeout_s)

    if provider is None:
        return None

    try:
        result = asyncio.run(locate(provider, config.geolocation.timeout_s))
    finally:
        provider.close()
    if not result.found:
        logger.info(f"Location {result.outcome.value}, distance filter and sort disabled")
        return None
    return result.point


def main():
    parser = argparse.ArgumentParser(description="Rental Finder")
    parser.add_argument("--demo", action="store_true", help="Use sample data (no backend needed)")
    parser.add_argument("--open", action="store_true", help="Open dashboard in browser after generating")
    parser.add_argument("--min-price", type=float)
    parser.add_argument("--max-price", type=float)
    parser.add_argument("--min-bedrooms", type=int)
    parser.add_argument("--max-bedrooms", type=int)
    parser.add_argument("--min-bathrooms", type=int)
    parser.add_argument("--college", action="append", help="Nearby college (repeatable, any match)")
    parser.add_argument("--search", help="College name as typed in the search box (partial match)")
    parser.add_argument("--gender", choices=["boys", "girls", "any"])
    parser.add_argument("--type", choices=["rental", "pg"])
    parser.add_argument("--hall", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--kitchen", action=argparse.BooleanOptionalAction, default=None,
                        help="Require (or exclude) a separate kitchen")
    parser.add_argument("--text", help="Match title or address")
    parser.add_argument("--available-from", help="YYYY-MM-DD")
    parser.add_argument("--near", help="Search around LAT,LNG")
    parser.add_argument("--locate", action="store_true", help="Use approximate location from your IP")
    parser.add_argument("--max-distance", type=float, help="Radius in km (default from config)")
    parser.add_argument("--sort", default=None, help="price_asc, price_desc, bedrooms_desc, date_asc, "
                                                    "date_desc, distance, newest, oldest")
    parser.add_argument("--style", help="Initial map style (streets, satellite, light)")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = AppConfig()
    if args.style:
        config.map.initial_style = args.style
    os.makedirs(config.output_dir, exist_ok=True)

    sort_key = parse_sort_key(args.sort or config.search.sort)
    spec = build_spec(args)

    user_location = resolve_location(args, config)
    if user_location is not None:
        radius = args.max_distance if args.max_distance is not None else config.search.max_distance_km
        spec = replace(spec, near=user_location, max_distance_km=radius)
    elif sort_key is SortKey.DISTANCE:
        logger.info("No location available, distance sort keeps the fetched order")

    if args.demo:
        logger.info("Running in DEMO mode with sample data...")
        if args.search and args.search.strip() and not spec.colleges:
            spec = replace(spec, colleges=(args.search.strip(),))
        results = search(generate_demo_data(config.search.colleges), spec, sort_key)
    else:
        if not config.keys.url:
            logger.error(
                "No backend configured!\n"
                "Set environment variables:\n"
                "  export LISTINGS_BACKEND_URL='https://<project>.supabase.co'\n"
                "  export LISTINGS_BACKEND_KEY='your-anon-key'\n"
                "\nOr run with --demo to test with sample data."
            )
            sys.exit(1)

        client = BackendClient(config.keys, config.http_timeout, config.rate_limit_wait)
        try:
            results = load_listings(
                PropertyFetcher(client, config.search.table), spec, sort_key, college=args.search or "",
            )
        except DataSourceError as e:
            logger.error(f"Could not load listings: {e}")
            sys.exit(2)
        finally:
            client.close()

    if not results:
        logger.warning("No properties found. Try widening the filters.")

    for listing in results[:5]:
        dist = format_distance(listing.distance)
        logger.info(f"  {marker_label(listing)}  {listing.title}{'  (' + dist + ')' if dist else ''}")

    html_path = generate_dashboard(results, config, spec, sort_key, user_location)
    logger.info(f"Dashboard saved to: {html_path}")
    logger.info(f"JSON data saved to: {os.path.join(config.output_dir, config.data_filename)}")

    if args.open:
        webbrowser.open(f"file://{os.path.abspath(html_path)}")

    print(f"\n✅ Dashboard ready: {html_path}")
    return html_path


if __name__ == "__main__":
    main()
