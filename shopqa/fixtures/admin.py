"""Entity fixtures created through the admin API.

Each fixture resolves the seed data it depends on (tax rates, countries,
sales channels, ...) by name, merges the resolved ids into the default
dataset plus caller overrides and creates the entity. Lookups that do not
depend on each other run concurrently; steps that consume ids from an
earlier step run after it. A failing step aborts the chain without
cleaning up what was already created.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from shopqa.errors import ValidationError
from shopqa.fixtures.merge import deep_merge
from shopqa.fixtures.models import ResolvedEntity
from shopqa.fixtures.service import FixtureService, Lookup

logger = logging.getLogger(__name__)

DEFAULT_TAX = "Standard rate"
DEFAULT_MANUFACTURER = "shopware AG"
DEFAULT_CATEGORY = "Home"
VISIBILITY_ALL = 30

CUSTOMER_DATA = {
    "firstName": "Max",
    "lastName": "Mustermann",
    "email": "example@shopware.com",
    "street": "Ebbinghoff 10",
    "zipcode": "48624",
    "city": "Schöppingen",
}


async def create_default_fixture(
    service: FixtureService,
    endpoint: str,
    data: Mapping[str, Any] | None = None,
    json_path: str | None = None,
    refs: Mapping[str, Lookup] | None = None,
) -> Any:
    """Create any entity from its default dataset merged with ``data``."""
    return await service.create(endpoint, data, json_path, refs=refs)


async def create_product_fixture(
    service: FixtureService,
    data: Mapping[str, Any] | None = None,
    category_name: str = DEFAULT_CATEGORY,
    sales_channel_name: str | None = None,
) -> Any:
    """Create a product and make it visible in a sales channel.

    Tax (``taxName`` in ``data``, default "Standard rate") and manufacturer
    are resolved first, the product is created with their ids, then it is
    assigned to the sales channel and category.
    """
    product = deep_merge(service.loader.load_or_empty("product"), data)
    tax_name = product.pop("taxName", None) or DEFAULT_TAX
    product_name = product.get("name")
    if not product_name:
        raise ValidationError(
            "Product fixtures need a name to assign visibility", field="name", value=product_name
        )

    ids = await service.resolve_ids(
        taxId=("tax", tax_name),
        manufacturerId=("product-manufacturer", DEFAULT_MANUFACTURER),
    )
    payload = deep_merge(ids, product)
    created = await service.create_raw("product", payload)
    logger.debug(f"Product '{product_name}' created, assigning visibility")

    await set_product_visibility(
        service,
        product_name,
        category_name=category_name,
        sales_channel_name=sales_channel_name,
    )
    return created


async def set_product_visibility(
    service: FixtureService,
    product_name: str,
    category_name: str = DEFAULT_CATEGORY,
    sales_channel_name: str | None = None,
) -> Any:
    """Make a product visible in the sales channel and assign a category."""
    sales_channel = await service.find(
        "sales-channel", sales_channel_name or service.config.sales_channel_name
    )
    product = await service.find("product", product_name)
    category = await service.find("category", category_name)

    return await service.update(
        "product",
        product.id,
        {
            "visibilities": [{"visibility": VISIBILITY_ALL, "salesChannelId": sales_channel.id}],
            "categories": [{"id": category.id}],
        },
    )


async def create_category_fixture(
    service: FixtureService, data: Mapping[str, Any] | None = None
) -> Any:
    return await service.create("category", data)


async def create_cms_fixture(
    service: FixtureService, data: Mapping[str, Any] | None = None
) -> Any:
    """Create a CMS page with one default section."""
    page = deep_merge(
        service.loader.load_or_empty("cms-page"),
        {"sections": [service.loader.load_or_empty("cms-section")]},
        data,
    )
    return await service.create_raw("cms-page", page)


async def create_property_fixture(
    service: FixtureService,
    options: Mapping[str, Any] | None = None,
    data: Mapping[str, Any] | None = None,
) -> Any:
    return await service.create("property-group", deep_merge(options, data))


async def create_language_fixture(service: FixtureService, locale_code: str = "en-PH") -> Any:
    language = service.loader.load_or_empty("language")
    locale = await service.find("locale", locale_code, field="code")
    return await service.create_raw(
        "language",
        {
            "name": language.get("name"),
            "localeId": locale.id,
            "parentId": language.get("parentId"),
        },
    )


async def create_snippet_fixture(
    service: FixtureService, data: Mapping[str, Any] | None = None
) -> Any:
    ids = await service.resolve_ids(
        languageId=("language", "English"),
        setId=("snippet-set", "BASE en-GB"),
    )
    payload = deep_merge(service.loader.load_or_empty("snippet"), ids, data)
    return await service.create_raw("snippet", payload)


async def create_shipping_fixture(
    service: FixtureService, data: Mapping[str, Any] | None = None
) -> Any:
    ids = await service.resolve_ids(
        availabilityRuleId=("rule", "Cart >= 0 (Payment)"),
        deliveryTimeId=("delivery-time", "3-4 weeks"),
    )
    payload = deep_merge(service.loader.load_or_empty("shipping-method"), data, ids)
    return await service.create_raw("shipping-method", payload)


async def create_payment_method_fixture(
    service: FixtureService, data: Mapping[str, Any] | None = None
) -> Any:
    payment_method = deep_merge(service.loader.load_or_empty("payment-method"), data)
    ids = await service.resolve_ids(
        salesChannelId=("sales-channel", service.config.sales_channel_name),
        languageId=("language", "English"),
    )
    payload = deep_merge(
        payment_method,
        {
            "active": True,
            "translations": [
                {"languageId": ids["languageId"], "name": payment_method.get("name")}
            ],
            "salesChannels": [{"id": ids["salesChannelId"]}],
        },
    )
    return await service.create_raw("payment-method", payload)


async def create_customer_fixture(
    service: FixtureService, data: Mapping[str, Any] | None = None
) -> Any:
    """Create a customer with one default address used for billing and shipping."""
    customer = deep_merge(service.loader.load_or_empty("customer"), data)
    address_data = service.loader.load_or_empty("customer-address")
    customer_id = customer.get("id") or service.create_uuid()
    address_id = service.create_uuid()

    ids = await service.resolve_ids(
        countryId=("country", "DE", "iso"),
        defaultPaymentMethodId=("payment-method", "Invoice"),
        salesChannelId=("sales-channel", service.config.sales_channel_name),
        groupId=("customer-group", "Standard customer group"),
        salutationId=("salutation", "Mr.", "displayName"),
    )

    addresses = address_data.get("addresses") or [{}]
    address = deep_merge(
        addresses[0],
        {
            "id": address_id,
            "customerId": customer_id,
            "salutationId": ids["salutationId"],
            "countryId": ids["countryId"],
        },
    )
    payload = deep_merge(
        customer,
        {
            "id": customer_id,
            "salutationId": ids["salutationId"],
            "defaultPaymentMethodId": ids["defaultPaymentMethodId"],
            "salesChannelId": ids["salesChannelId"],
            "groupId": ids["groupId"],
            "defaultBillingAddressId": address_id,
            "defaultShippingAddressId": address_id,
            "addresses": [address],
        },
    )
    return await service.create_raw("customer", payload)


async def set_customer_group(
    service: FixtureService, customer_number: str, group_data: Mapping[str, Any]
) -> Any:
    """Create a customer group and assign an existing customer to it."""
    await service.create("customer-group", group_data)
    customer = await service.find("customer", customer_number, field="customerNumber")
    group = await service.find("customer-group", group_data["name"])
    return await service.update("customer", customer.id, {"groupId": group.id})


async def create_order_fixture(
    service: FixtureService, data: Mapping[str, Any] | None = None
) -> Any:
    """Create an order directly through the admin API."""
    lookups = {
        "salutation": ("salutation", "Mr.", "displayName"),
        "country": ("country", "DE", "iso"),
        "currency": ("currency", "Euro", "name"),
        "state": ("state-machine-state", "open", "technicalName"),
        "sales_channel": ("sales-channel", "Headless", "name"),
    }
    names = list(lookups)
    # several state machines share the "open" state; find() keeps the first
    entities = await asyncio.gather(*(service.find(*lookups[name]) for name in names))
    found: dict[str, ResolvedEntity] = dict(zip(names, entities))

    salutation_id = found["salutation"].id
    address = {**CUSTOMER_DATA, "salutationId": salutation_id, "countryId": found["country"].id}
    payload = deep_merge(
        {
            "currencyId": found["currency"].id,
            "currencyFactor": found["currency"].get("factor"),
            "stateId": found["state"].id,
            "salesChannelId": found["sales_channel"].id,
            "billingAddress": address,
            "orderCustomer": {
                **CUSTOMER_DATA,
                "salutationId": salutation_id,
                "billingAddress": address,
            },
        },
        data,
    )
    return await service.create_raw("order", payload)


async def create_sales_channel_fixture(
    service: FixtureService, data: Mapping[str, Any] | None = None
) -> Any:
    """Create a storefront sales channel wired to the default seed entities."""
    ids = await service.resolve_ids(
        typeId=("sales-channel-type", "Storefront"),
        languageId=("language", "English"),
        currencyId=("currency", "Euro"),
        countryId=("country", "DE", "iso"),
        paymentMethodId=("payment-method", "Invoice"),
        shippingMethodId=("shipping-method", "Standard"),
        customerGroupId=("customer-group", "Standard customer group"),
        navigationCategoryId=("category", DEFAULT_CATEGORY),
    )
    payload = deep_merge(
        service.loader.load_or_empty("sales-channel"),
        ids,
        {
            "languages": [{"id": ids["languageId"]}],
            "currencies": [{"id": ids["currencyId"]}],
            "countries": [{"id": ids["countryId"]}],
            "paymentMethods": [{"id": ids["paymentMethodId"]}],
            "shippingMethods": [{"id": ids["shippingMethodId"]}],
        },
        data,
    )
    return await service.create_raw("sales-channel", payload)


async def set_sales_channel_domain(
    service: FixtureService, sales_channel_name: str | None = None, url: str | None = None
) -> Any:
    """Attach a domain for the shop's base URL to a sales channel."""
    sales_channel = await service.find(
        "sales-channel", sales_channel_name or service.config.sales_channel_name
    )
    ids = await service.resolve_ids(
        languageId=("language", "English"),
        currencyId=("currency", "Euro"),
        snippetSetId=("snippet-set", "BASE en-GB"),
    )
    domain = {"url": url or service.config.base_url, **ids}
    return await service.update("sales-channel", sales_channel.id, {"domains": [domain]})
