# forexhub/storage/seed.py
"""
Default catalog seeding.

Works against any adapter through the storage contract, so the same seed
fills a fresh database (scripts/seed_catalog.py) or the volatile store at
startup, where it keeps degraded mode from serving an empty taxonomy.
"""

import logging

from forexhub.schemas.content import CategoryCreate
from forexhub.storage.base import StorageAdapter
from forexhub.storage.text import slugify

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "Expert Advisors", "description": "Automated trading robots for MT4/MT5"},
    {"name": "Indicators", "description": "Technical analysis indicators and tools"},
    {"name": "Trading Strategies", "description": "Proven forex trading strategies and methods"},
    {"name": "Market Analysis", "description": "Market insights and technical analysis"},
    {"name": "Tutorials", "description": "Step-by-step guides and educational content"},
    {"name": "News & Updates", "description": "Latest forex market news and platform updates"},
    {"name": "Risk Management", "description": "Risk management techniques and tools"},
    {"name": "Platform Setup", "description": "MT4/MT5 installation and configuration guides"},
]


async def seed_default_categories(adapter: StorageAdapter) -> int:
    """Create any default category whose slug is missing. Returns the number created."""
    created = 0
    for sort_order, data in enumerate(DEFAULT_CATEGORIES):
        slug = slugify(data["name"])
        if await adapter.categories.get_by_slug(slug) is not None:
            logger.debug(f"Category '{slug}' already exists, skipping")
            continue
        await adapter.categories.create(CategoryCreate(slug=slug, sort_order=sort_order, **data))
        created += 1

    logger.info(
        f"Seeded {created} default categories ({len(DEFAULT_CATEGORIES)} configured)",
        extra={"event": "categories_seeded", "storage_type": adapter.name},
    )
    return created
