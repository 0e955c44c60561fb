"""shopqa - fixture and environment control for shop end-to-end tests.

Provides an async admin/store API client, a caching bearer-token session,
fixture builders that resolve seed data before creating entities, and an
environment reset run before each test.

Example:
    >>> from shopqa import create_context, create_product_fixture, reset_environment
    >>>
    >>> async with create_context() as ctx:
    ...     await reset_environment(ctx)
    ...     product = await create_product_fixture(ctx.fixtures, {"name": "Shirt"})
"""

from shopqa.client import ApiClient, RequestRecord, StoreApiClient, normalize_body
from shopqa.config import HarnessConfig, load_config
from shopqa.context import HarnessContext, create_context
from shopqa.errors import (
    AuthError,
    ConfigError,
    ErrorCode,
    FixtureLoadError,
    HttpError,
    NotFoundError,
    ResetError,
    ShopQAError,
    ValidationError,
)
from shopqa.fixtures import (
    FixtureLoader,
    FixtureService,
    ResolvedEntity,
    SearchFilter,
    StorefrontFixtures,
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
    deep_merge,
    set_customer_group,
    set_product_visibility,
    set_sales_channel_domain,
)
from shopqa.reset import (
    BaselineRestorer,
    CleanupServerRestorer,
    EnvironmentResetController,
    LocalCommandRestorer,
    ResetReport,
    reset_environment,
)
from shopqa.session import Credential, SessionManager, SessionState, SessionStore

__version__ = "0.3.0"

__all__ = [
    "ApiClient",
    "AuthError",
    "BaselineRestorer",
    "CleanupServerRestorer",
    "ConfigError",
    "Credential",
    "EnvironmentResetController",
    "ErrorCode",
    "FixtureLoadError",
    "FixtureLoader",
    "FixtureService",
    "HarnessConfig",
    "HarnessContext",
    "HttpError",
    "LocalCommandRestorer",
    "NotFoundError",
    "RequestRecord",
    "ResetError",
    "ResetReport",
    "ResolvedEntity",
    "SearchFilter",
    "SessionManager",
    "SessionState",
    "SessionStore",
    "ShopQAError",
    "StoreApiClient",
    "StorefrontFixtures",
    "ValidationError",
    "create_category_fixture",
    "create_cms_fixture",
    "create_context",
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
    "load_config",
    "normalize_body",
    "reset_environment",
    "set_customer_group",
    "set_product_visibility",
    "set_sales_channel_domain",
]
