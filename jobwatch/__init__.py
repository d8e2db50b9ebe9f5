"""jobwatch: job posting matching, deduplication and incremental scanning."""

__version__ = "0.1.0"
