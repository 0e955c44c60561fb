"""Fixture builder: default datasets, dependency resolution and entity creation."""

from shopqa.fixtures.admin import (
    create_category_fixture,
    create_cms_fixture,
    create_customer_fixture,
    create_default_fixture,
    create_language_fixture,
    create_order_fixture,
    create_payment_method_fixture,
    create_product_fixture,
    create_property_fixture,
    create_sales_channel_fixture,
    create_shipping_fixture,
    create_snippet_fixture,
    set_customer_group,
    set_product_visibility,
    set_sales_channel_domain,
)
from shopqa.fixtures.loaders import FixtureLoader
from shopqa.fixtures.merge import deep_merge
from shopqa.fixtures.models import ResolvedEntity, SearchFilter
from shopqa.fixtures.service import FixtureService
from shopqa.fixtures.storefront import StorefrontFixtures

__all__ = [
    "FixtureLoader",
    "FixtureService",
    "ResolvedEntity",
    "SearchFilter",
    "StorefrontFixtures",
    "create_category_fixture",
    "create_cms_fixture",
    "create_customer_fixture",
    "create_default_fixture",
    "create_language_fixture",
    "create_order_fixture",
    "create_payment_method_fixture",
    "create_product_fixture",
    "create_property_fixture",
    "create_sales_channel_fixture",
    "create_shipping_fixture",
    "create_snippet_fixture",
    "deep_merge",
    "set_customer_group",
    "set_product_visibility",
    "set_sales_channel_domain",
]
