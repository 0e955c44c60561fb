"""Exception hierarchy for shopqa.

All harness failures derive from ``ShopQAError``. Each error has a
machine-readable ``error_code``, the ``ErrorContext`` of the call that
failed, and a list of hints shown by the CLI.

Fixture chains never translate these errors: the enclosing test fails with
the original exception so the chained HTTP details stay visible.

Example:
    try:
        await service.find("tax", "Reduced rate")
    except NotFoundError as e:
        print(e.format_verbose())
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable identifiers for the kinds of harness failure."""

    HTTP_ERROR = "http_error"
    NETWORK_ERROR = "network_error"
    VALIDATION_FAILED = "validation_failed"
    INVALID_CONFIG = "invalid_config"
    AUTH_FAILED = "auth_failed"
    ENTITY_NOT_FOUND = "entity_not_found"
    FIXTURE_LOAD_FAILED = "fixture_load_failed"
    RESET_FAILED = "reset_failed"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """What the harness was doing when the error was raised.

    Attributes:
        operation: Harness operation, e.g. "find" or "authenticate".
        request: ``method`` and ``url`` of the failing call.
        response: ``status`` and parsed ``body`` of the failing call.
        extra: Free-form keyword details passed to the error.
    """

    operation: str | None = None
    request: dict[str, Any] | None = None
    response: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def lines(self) -> list[str]:
        out = []
        if self.operation:
            out.append(f"Operation: {self.operation}")
        if self.request:
            out.append(f"Request: {self.request.get('method')} {self.request.get('url')}")
        if self.response:
            out.append(f"Response: HTTP {self.response.get('status')}")
        for key, value in self.extra.items():
            out.append(f"{key}: {value}")
        return out


class ShopQAError(Exception):
    """Base class of every error raised by shopqa."""

    error_code: ErrorCode = ErrorCode.UNKNOWN
    default_message: str = "Unexpected harness failure"
    hints: tuple[str, ...] = ()

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
        suggestions: list[str] | None = None,
        operation: str | None = None,
        **details: Any,
    ) -> None:
        self.message = message or self.default_message
        if error_code is not None:
            self.error_code = error_code
        self.context = context or ErrorContext()
        if operation:
            self.context.operation = operation
        self.context.extra.update(details)
        self.cause = cause
        self.suggestions = list(self.hints) if suggestions is None else suggestions
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.context.operation:
            return f"{self.message} (during {self.context.operation})"
        return self.message

    def format_verbose(self) -> str:
        """Message, context and hints as a multi-line report."""
        lines = [f"{type(self).__name__} [{self.error_code.value}]: {self.message}"]
        lines.extend(self.context.lines())
        if self.cause is not None:
            lines.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")
        if self.suggestions:
            lines.append("Hints:")
            lines.extend(f"  - {hint}" for hint in self.suggestions)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "context": {k: v for k, v in asdict(self.context).items() if v},
            "suggestions": self.suggestions,
        }
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data


_STATUS_HINTS: dict[int, tuple[str, ...]] = {
    400: (
        "Compare the fixture payload with the entity definition",
        "The 'errors' list of the response names the rejected fields",
    ),
    401: (
        "The bearer token expired or was revoked; authenticate again",
        "Check username and password in the shopqa configuration",
    ),
    403: ("The integration user lacks the ACL privilege for this entity",),
    404: (
        "Check the endpoint name and the api_version setting",
        "The entity may be gone; was the environment reset meanwhile?",
    ),
}
_SERVER_ERROR_HINTS = (
    "Look at the shop's server log",
    "Reset the environment and run the test again",
)


def error_details(body: Any) -> list[str]:
    """Collect ``detail`` strings from a JSON:API error body."""
    if not isinstance(body, dict) or not isinstance(body.get("errors"), list):
        return []
    return [
        str(item.get("detail") or item.get("title"))
        for item in body["errors"]
        if isinstance(item, dict) and (item.get("detail") or item.get("title"))
    ]


class HttpError(ShopQAError):
    """A request failed on the network or returned a non-2xx status.

    ``status_code`` is None for network failures. ``body`` holds the parsed
    JSON error body when the server sent one, else the raw text.
    """

    error_code = ErrorCode.HTTP_ERROR
    default_message = "HTTP request failed"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        body: Any = None,
        method: str | None = None,
        url: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url
        self.details = error_details(body)

        context = kwargs.pop("context", None) or ErrorContext()
        context.request = {"method": method, "url": url}
        if status_code is None:
            kwargs.setdefault("error_code", ErrorCode.NETWORK_ERROR)
            message = message or f"{method} {url} failed before a response was received"
        else:
            context.response = {"status": status_code, "body": body}
            if status_code >= 500:
                hints = _SERVER_ERROR_HINTS
            else:
                hints = _STATUS_HINTS.get(status_code, ())
            kwargs.setdefault("suggestions", list(hints))
            if message is None:
                message = f"{method} {url} returned HTTP {status_code}"
                if self.details:
                    message += ": " + "; ".join(self.details)

        super().__init__(message, context=context, **kwargs)

    @property
    def is_network_error(self) -> bool:
        return self.status_code is None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["details"] = self.details
        return data


class AuthError(ShopQAError):
    """Token request failed or the session is no longer valid."""

    error_code = ErrorCode.AUTH_FAILED
    default_message = "Authentication failed"
    hints = (
        "Check grant_type, client_id, username and password settings",
        "The admin API must be reachable at base_url + api_path",
    )


class ValidationError(ShopQAError):
    """A harness call was made with invalid arguments."""

    error_code = ErrorCode.VALIDATION_FAILED
    default_message = "Invalid argument"

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value
        super().__init__(message, **kwargs)

    def __str__(self) -> str:
        text = super().__str__()
        return f"{text} (field: {self.field})" if self.field else text

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(field=self.field, value=repr(self.value))
        return data


class ConfigError(ValidationError):
    """Configuration could not be loaded or is invalid."""

    error_code = ErrorCode.INVALID_CONFIG
    default_message = "Invalid configuration"
    hints = (
        "Check the YAML syntax of the config file",
        "Check the SHOPQA_* and APP_URL environment variables",
    )


class NotFoundError(ShopQAError):
    """A search returned no match where one was required.

    Fixtures assume baseline seed data exists, so a missing tax rate,
    country or sales channel usually means the environment was not reset.
    """

    error_code = ErrorCode.ENTITY_NOT_FOUND
    default_message = "Entity not found"
    hints = (
        "Reset the environment so the baseline seed data exists",
        "Names are matched exactly; check the search field and value",
    )

    def __init__(
        self,
        message: str | None = None,
        entity: str | None = None,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.entity = entity
        self.field = field
        self.value = value
        if message is None and entity:
            message = f"No {entity} found where {field or 'name'} equals {value!r}"
        super().__init__(message, **kwargs)


class FixtureLoadError(ShopQAError):
    """A default dataset file is missing or malformed."""

    error_code = ErrorCode.FIXTURE_LOAD_FAILED
    default_message = "Fixture dataset could not be loaded"


class ResetError(ShopQAError):
    """One step of an environment reset failed."""

    error_code = ErrorCode.RESET_FAILED
    default_message = "Environment reset step failed"
