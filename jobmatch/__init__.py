"""Job Match Engine: ranked, deduplicated, tier-sized job recommendations."""

__version__ = "0.3.0"
