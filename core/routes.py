"""Route table: one RouteConfig per inbound endpoint and method group."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from core.transform import (
    ResponseRule,
    always,
    on_unreachable,
    repackage_error,
    require_token,
    session_validation,
    success_envelope,
    token_expired,
)
from core.validation import (
    EmailList,
    MinLength,
    NonEmptyList,
    RequiredFields,
    RequiredQuery,
    Validator,
)

DEFAULT_UNREACHABLE_MESSAGE = "Error connecting to backend service"
NORWEGIAN_RETRY_MESSAGE = "En feil oppstod. Vennligst prøv igjen senere."

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

VIPPS_DEFAULT_SETTINGS = {
    "enabled": False,
    "test_mode": True,
    "client_id": "",
    "client_secret": "",
    "subscription_key": "",
    "merchant_serial_number": "",
    "redirect_url": "/payment/success",
    "fallback_url": "/payment/cancel",
    "webhook_url": "/api/payments/vipps/webhook",
}


@dataclass(frozen=True)
class RouteConfig:
    """Static forwarding rules for one inbound endpoint."""

    name: str
    path: str
    allowed_methods: frozenset[str]
    path_template: str | None = None
    requires_auth: bool = False
    validators: tuple[Validator, ...] = ()
    forward_fields: tuple[str, ...] | None = None
    forward_query: tuple[str, ...] = ()
    flag_query: tuple[str, ...] = ()
    fixed_query: dict[str, str] = field(default_factory=dict)
    backend_method: str | None = None
    rules: tuple[ResponseRule, ...] = ()
    unreachable_message: str = DEFAULT_UNREACHABLE_MESSAGE
    unreachable_extra: dict[str, Any] = field(default_factory=dict)
    response_headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None

    def resolve_path(self, path_params: dict[str, str]) -> str:
        """Substitute path parameters into the backend path template."""
        template = self.path_template or self.path
        quoted = {key: quote(str(value), safe="") for key, value in path_params.items()}
        return template.format_map(quoted)

    def build_params(self, query: dict[str, str]) -> dict[str, str]:
        """Backend query parameters derived from the inbound query."""
        params = {name: query[name] for name in self.forward_query if query.get(name)}
        params.update({name: "true" for name in self.flag_query if query.get(name) == "true"})
        params.update(self.fixed_query)
        return params

    def build_body(self, body: Any) -> Any:
        """Outbound body: the inbound body, or only ``forward_fields`` of it."""
        if self.forward_fields is None:
            return body
        source = body if isinstance(body, dict) else {}
        return {name: source[name] for name in self.forward_fields if name in source}


def _route(name: str, path: str, methods: Iterable[str], **kwargs: Any) -> RouteConfig:
    return RouteConfig(name=name, path=path, allowed_methods=frozenset(methods), **kwargs)


ROUTES: tuple[RouteConfig, ...] = (
    # Contact
    _route(
        "contact.submit",
        "/api/contact",
        ["POST"],
        validators=(
            RequiredFields(("name", "email", "message"), "Please provide name, email, and message"),
        ),
        unreachable_message="Error submitting contact form",
    ),
    _route("contact.detail", "/api/contact/{id}", ["GET", "DELETE"], requires_auth=True),
    # Orders. Static segments come before /api/orders/{id}.
    _route(
        "orders.list",
        "/api/orders",
        ["GET"],
        requires_auth=True,
        forward_query=("status", "limit", "page"),
        rules=(token_expired(),),
        unreachable_message="Server error",
    ),
    _route("orders.create", "/api/orders", ["POST"], unreachable_message="Server error"),
    _route(
        "orders.mine",
        "/api/orders/myorders",
        ["GET"],
        requires_auth=True,
        rules=(token_expired(),),
        unreachable_message="Server error",
    ),
    _route(
        "orders.stats",
        "/api/orders/stats",
        ["GET"],
        requires_auth=True,
        unreachable_message="Server error",
    ),
    _route(
        "orders.detail",
        "/api/orders/{id}",
        ["GET", "PUT", "DELETE"],
        rules=(repackage_error("Failed to process order request"),),
        unreachable_message="Server error",
    ),
    _route(
        "orders.status",
        "/api/orders/{id}/status",
        ["PUT"],
        requires_auth=True,
        validators=(RequiredFields(("status",), "Status is required"),),
        forward_fields=("status",),
        rules=(repackage_error("Failed to update order status"),),
        unreachable_message="Server error",
    ),
    _route(
        "orders.files",
        "/api/orders/{id}/files",
        ["GET"],
        rules=(repackage_error("Error from backend"),),
        unreachable_message="Error retrieving files for order",
    ),
    _route(
        "orders.attach_files",
        "/api/orders/{id}/files",
        ["POST"],
        validators=(NonEmptyList("fileIds", "File IDs array is required"),),
        forward_fields=("fileIds",),
        rules=(repackage_error("Error from backend"),),
        unreachable_message="Error associating files with order",
    ),
    # Password reset
    _route(
        "password_reset.request",
        "/api/password-reset/request",
        ["POST"],
        validators=(RequiredFields(("email",), "E-postadresse er påkrevd"),),
        forward_fields=("email",),
        unreachable_message=NORWEGIAN_RETRY_MESSAGE,
    ),
    _route(
        "password_reset.reset",
        "/api/password-reset/reset",
        ["POST"],
        validators=(
            RequiredFields(("token", "password"), "Token og nytt passord er påkrevd"),
            MinLength("password", 6, "Passord må være minst 6 tegn langt"),
        ),
        forward_fields=("token", "password"),
        unreachable_message=NORWEGIAN_RETRY_MESSAGE,
    ),
    _route(
        "password_reset.verify",
        "/api/password-reset/verify/{token}",
        ["GET"],
        unreachable_message=NORWEGIAN_RETRY_MESSAGE,
        unreachable_extra={"valid": False},
    ),
    # Payments
    _route("payments.list", "/api/payments", ["GET"], unreachable_message="Error fetching payments"),
    _route(
        "vipps.initiate",
        "/api/payments/vipps/initiate",
        ["POST"],
        unreachable_message="Error initiating Vipps payment",
    ),
    _route(
        "vipps.status",
        "/api/payments/vipps/status",
        ["GET"],
        validators=(RequiredQuery("orderId", "Order ID is required"),),
        forward_query=("orderId",),
        unreachable_message="Error checking Vipps payment status",
    ),
    _route(
        "vipps.webhook",
        "/api/payments/vipps/webhook",
        ["POST"],
        rules=(success_envelope({"success": True}),),
        unreachable_message="Server error processing webhook",
    ),
    # Products
    _route("products", "/api/products", ["GET", "POST"]),
    _route(
        "products.featured",
        "/api/products/featured",
        ["GET"],
        response_headers=NO_CACHE_HEADERS,
    ),
    # Settings
    _route("settings.payments", "/api/settings/payments", ["GET", "PUT"], requires_auth=True),
    _route(
        "settings.vipps.read",
        "/api/settings/payments/vipps",
        ["GET"],
        requires_auth=True,
        rules=(
            on_unreachable(
                200,
                {
                    "settings": VIPPS_DEFAULT_SETTINGS,
                    "message": "Default settings provided - backend not ready",
                },
            ),
        ),
    ),
    _route(
        "settings.vipps.update",
        "/api/settings/payments/vipps",
        ["PUT"],
        requires_auth=True,
        rules=(
            on_unreachable(
                200,
                {"message": "Settings will be applied when the backend is ready", "success": True},
            ),
        ),
    ),
    _route(
        "settings.vipps.test",
        "/api/settings/payments/vipps/test",
        ["POST"],
        requires_auth=True,
        rules=(
            on_unreachable(
                200,
                {
                    "message": "Testing capability will be available soon",
                    "success": True,
                    "testMode": True,
                },
            ),
        ),
    ),
    _route(
        "settings.email.test",
        "/api/settings/email/test",
        ["POST"],
        requires_auth=True,
        validators=(
            EmailList("email", "Email address is required", "Invalid email address format"),
        ),
        forward_fields=("email",),
        rules=(on_unreachable(503, {"message": "Unable to connect to email service"}),),
    ),
    _route(
        "settings.site",
        "/api/settings/site",
        ["GET", "PUT"],
        requires_auth=True,
        rules=(token_expired(),),
    ),
    # Uploads (JSON endpoints only)
    _route(
        "uploads.list",
        "/api/uploads",
        ["GET"],
        forward_query=("limit", "page", "fileType"),
        flag_query=("orderFiles", "temporaryOnly"),
        fixed_query={"populate": "order"},
        rules=(repackage_error("Error from backend"),),
        unreachable_message="Error fetching uploads",
    ),
    _route(
        "uploads.detail",
        "/api/uploads/{id}",
        ["GET", "PATCH", "DELETE"],
        rules=(repackage_error("Error from backend"),),
        unreachable_message="Error processing upload request",
    ),
    _route(
        "uploads.reprocess",
        "/api/uploads/{id}/reprocess",
        ["POST"],
        forward_fields=(),
        rules=(repackage_error("Error from backend"),),
        unreachable_message="Error reprocessing upload",
    ),
    _route(
        "uploads.set_order",
        "/api/uploads/{id}/set-order",
        ["POST"],
        path_template="/api/uploads/{id}",
        backend_method="PATCH",
        validators=(RequiredFields(("orderId",), "Order ID is required in the request body"),),
        forward_fields=("orderId",),
        rules=(repackage_error("Error from backend"),),
        unreachable_message="Error associating file with order",
    ),
    # Users. Static segments come before /api/users/{id}.
    _route(
        "users.list",
        "/api/users",
        ["GET"],
        requires_auth=True,
        rules=(token_expired(),),
        unreachable_message="Server error",
    ),
    _route(
        "users.create_admin",
        "/api/users/admin",
        ["POST"],
        forward_fields=("name", "email", "password", "adminSecretKey"),
        unreachable_message="An error occurred during admin creation",
    ),
    _route(
        "users.login",
        "/api/users/login",
        ["POST"],
        validators=(RequiredFields(("email", "password"), "Email and password are required"),),
        forward_fields=("email", "password"),
        rules=(
            on_unreachable(
                503,
                {"message": "Unable to connect to authentication service. Please try again later."},
            ),
            require_token("Invalid authentication response"),
        ),
    ),
    _route(
        "users.register",
        "/api/users/register",
        ["POST"],
        validators=(RequiredFields(("name", "email", "password"), "Please provide all required fields"),),
        forward_fields=("name", "email", "password", "address"),
        rules=(
            on_unreachable(
                503,
                {"message": "Unable to connect to registration service. Please try again later."},
            ),
            require_token("Invalid registration response"),
        ),
    ),
    _route(
        "users.register_admin",
        "/api/users/register-admin",
        ["POST"],
        requires_auth=True,
        validators=(
            RequiredFields(("name", "email", "password"), "Please provide name, email, and password"),
        ),
        forward_fields=("name", "email", "password", "role", "phone"),
        unreachable_message="Server error",
    ),
    _route(
        "users.logout",
        "/api/users/logout",
        ["POST"],
        requires_auth=True,
        rules=(always(200, {"message": "Logout successful"}),),
    ),
    _route(
        "users.validate_session",
        "/api/users/validate-session",
        ["GET"],
        path_template="/api/users/validate",
        requires_auth=True,
        rules=session_validation(),
        timeout=5.0,
    ),
    _route(
        "users.detail",
        "/api/users/{id}",
        ["GET", "PUT"],
        requires_auth=True,
        unreachable_message="Server error",
    ),
    _route(
        "users.delete",
        "/api/users/{id}",
        ["DELETE"],
        requires_auth=True,
        rules=(success_envelope({"message": "User deleted successfully"}),),
        unreachable_message="Server error",
    ),
)


class RouteTable:
    """Lookup of route configs by inbound path and method."""

    def __init__(self, routes: Iterable[RouteConfig] = ROUTES) -> None:
        self._by_path: dict[str, list[RouteConfig]] = {}
        for route in routes:
            self._by_path.setdefault(route.path, []).append(route)

    def paths(self) -> list[str]:
        """Inbound paths in registration order."""
        return list(self._by_path)

    def routes(self) -> list[RouteConfig]:
        return [route for group in self._by_path.values() for route in group]

    def allowed_methods(self, path: str) -> frozenset[str]:
        return frozenset().union(*(route.allowed_methods for route in self._by_path.get(path, [])))

    def resolve(self, path: str, method: str) -> RouteConfig:
        """Return the config serving ``method`` on ``path``.

        Falls back to the first config for the path so the method gate can
        reject the request.
        """
        group = self._by_path[path]
        method = method.upper()
        for route in group:
            if method in route.allowed_methods:
                return route
        return group[0]
