"""
Cache invalidation for vendor operations

The storefront caches listings by tag. After a vendor mutates a product or a
blog, we POST to its invalidation endpoint so the affected listings refresh.
Invalidation is best effort: failures are logged and never raised, so a
cache outage cannot fail the mutation that triggered it.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import requests

from utils import as_utc

logger = logging.getLogger(__name__)

BASE_URL = os.getenv("BASE_URL", "http://localhost:3000")
CACHE_TIMEOUT_SECONDS = float(os.getenv("CACHE_TIMEOUT_SECONDS", "5"))
NEW_ARRIVAL_DAYS = 3

FEATURED_PRODUCTS_TAG = "featured_products"
NEW_ARRIVALS_TAG = "new_arrival_products"
TOP_SELLING_TAG = "top_selling_products"
PRODUCT_TAG = "product"
FEATURED_BLOGS_TAG = "featured_blogs_home"
PUBLISHED_BLOGS_TAG = "published_blogs_home"
BLOG_CATEGORIES_TAG = "blog_categories"


def invalidate_cache(type: str, tag: Optional[str] = None) -> bool:
    body = {"type": "tag", "tag": tag} if tag else {"type": type}
    label = tag or type
    try:
        response = requests.post(
            f"{BASE_URL.rstrip('/')}/api/cache/invalidate",
            json=body,
            timeout=CACHE_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        logger.error("Failed to invalidate cache (%s): %s", label, exc)
        return False
    if not response.ok:
        logger.warning("Cache invalidation for %s answered %s", label, response.status_code)
        return False
    logger.info("Cache invalidated: %s", label)
    return True


class ProductCacheInvalidation:
    @staticmethod
    def featured_products():
        return invalidate_cache("tag", FEATURED_PRODUCTS_TAG)

    @staticmethod
    def new_arrivals():
        return invalidate_cache("tag", NEW_ARRIVALS_TAG)

    @staticmethod
    def top_selling():
        return invalidate_cache("tag", TOP_SELLING_TAG)

    @staticmethod
    def single_product():
        return invalidate_cache("tag", PRODUCT_TAG)

    @staticmethod
    def all_products():
        return invalidate_cache("products")

    @staticmethod
    def smart_invalidation(product: dict) -> None:
        """Invalidate only what the product's state can affect, plus the general listings."""
        if product.get("featured"):
            invalidate_cache("tag", FEATURED_PRODUCTS_TAG)
        created_at = as_utc(product.get("createdAt"))
        cutoff = datetime.now(timezone.utc) - timedelta(days=NEW_ARRIVAL_DAYS)
        if created_at and created_at > cutoff:
            invalidate_cache("tag", NEW_ARRIVALS_TAG)
        invalidate_cache("products")


class BlogCacheInvalidation:
    @staticmethod
    def featured_blogs():
        return invalidate_cache("tag", FEATURED_BLOGS_TAG)

    @staticmethod
    def published_blogs():
        return invalidate_cache("tag", PUBLISHED_BLOGS_TAG)

    @staticmethod
    def blog_categories():
        return invalidate_cache("tag", BLOG_CATEGORIES_TAG)

    @staticmethod
    def all_blogs():
        return invalidate_cache("blogs")

    @staticmethod
    def smart_invalidation(blog: dict) -> None:
        if blog.get("featured"):
            invalidate_cache("tag", FEATURED_BLOGS_TAG)
        if blog.get("status") == "published":
            invalidate_cache("tag", PUBLISHED_BLOGS_TAG)
        invalidate_cache("blogs")


class ComprehensiveCacheInvalidation:
    """Broad invalidations; use sparingly."""

    @staticmethod
    def all_products():
        return invalidate_cache("products")

    @staticmethod
    def all_blogs():
        return invalidate_cache("blogs")

    @staticmethod
    def everything():
        return invalidate_cache("all")
