"""Test helper utilities for jobwatch tests."""

from .builders import make_match, make_posting, make_profile, make_raw, make_record
from .fixture_scraper import FixtureScraper, load_fixture_postings

__all__ = [
    "FixtureScraper",
    "load_fixture_postings",
    "make_match",
    "make_posting",
    "make_profile",
    "make_raw",
    "make_record",
]
