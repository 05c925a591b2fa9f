"""Tests for response rules, validators and header handling."""

import pytest

from core.exceptions import BackendConnectionError
from core.headers import HeaderBuilder, extract_bearer_token
from core.request_types import BackendReply, ForwardedRequest, InboundRequest
from core.transform import (
    RelayContext,
    always,
    apply_rules,
    decode_token_payload,
    on_unreachable,
    repackage_error,
    require_token,
    success_envelope,
    token_expired,
)
from core.validation import EmailList, MinLength, RequiredFields, RequiredQuery, run_validators

FORWARDED = ForwardedRequest("test", "GET", "/api/x", {})


def _replied(status_code, body=None) -> RelayContext:
    return RelayContext(forwarded=FORWARDED, token="t", reply=BackendReply(status_code, body))


def _down() -> RelayContext:
    return RelayContext(forwarded=FORWARDED, token="t", error=BackendConnectionError("down"))


# ============================================================================
# Response rules
# ============================================================================

def test_first_matching_rule_wins():
    rules = (on_unreachable(200, {"fallback": True}), token_expired(), always(418, {}))

    assert apply_rules(rules, _down())[1:] == (200, {"fallback": True})
    assert apply_rules(rules, _replied(401))[0] == "token_expired"
    assert apply_rules(rules, _replied(200))[0] == "always"


def test_no_match_returns_none():
    assert apply_rules((token_expired(),), _replied(403, {"message": "no"})) is None
    assert apply_rules((), _down()) is None


def test_success_envelope_ignores_errors():
    rule = success_envelope({"success": True})

    assert apply_rules((rule,), _replied(204))[1:] == (200, {"success": True})
    assert apply_rules((rule,), _replied(500, {"message": "x"})) is None
    assert apply_rules((rule,), _down()) is None


def test_repackage_error_uses_default_message():
    rule = repackage_error("Failed to update order status")

    _, status_code, body = apply_rules((rule,), _replied(422, {"details": []}))

    assert status_code == 422
    assert body == {"message": "Failed to update order status", "error": None}


def test_repackage_error_keeps_backend_fields():
    rule = repackage_error("fallback")

    _, _, body = apply_rules((rule,), _replied(409, {"message": "Conflict", "error": "dup"}))

    assert body == {"message": "Conflict", "error": "dup"}


def test_require_token_only_checks_successful_replies():
    rule = require_token("Invalid authentication response")

    assert apply_rules((rule,), _replied(200, {"token": "abc"})) is None
    assert apply_rules((rule,), _replied(401, {"message": "bad"})) is None
    assert apply_rules((rule,), _replied(200, {}))[1] == 500


@pytest.mark.parametrize("token", ["not-a-jwt", "a.!!!.c", "a.bnVsbA.c"])
def test_decode_token_payload_rejects_garbage(token):
    assert decode_token_payload(token) is None


# ============================================================================
# Validators
# ============================================================================

def _inbound(body=None, query=None) -> InboundRequest:
    return InboundRequest("POST", "/api/x", body=body, query=query or {})


def test_required_fields_treat_empty_values_as_missing():
    validator = RequiredFields(("name", "email"), "missing")

    assert validator.check(_inbound({"name": "A", "email": ""})) == {"message": "missing"}
    assert validator.check(_inbound(["not", "a", "dict"])) == {"message": "missing"}
    assert validator.check(_inbound({"name": "A", "email": "a@b.no"})) is None


def test_min_length_ignores_absent_field():
    validator = MinLength("password", 6, "short")

    assert validator.check(_inbound({})) is None
    assert validator.check(_inbound({"password": "abc"})) == {"message": "short"}
    assert validator.check(_inbound({"password": "abcdef"})) is None


def test_email_list_accepts_one_valid_address():
    validator = EmailList("email", "missing", "invalid")

    assert validator.check(_inbound({})) == {"message": "missing"}
    assert validator.check(_inbound({"email": "foo, bar@baz.no"})) is None


def test_run_validators_stops_at_first_failure():
    validators = (RequiredQuery("orderId", "first"), RequiredFields(("x",), "second"))

    assert run_validators(validators, _inbound({})) == {"message": "first"}
    assert run_validators(validators, _inbound({}, {"orderId": "9"})) == {"message": "second"}


# ============================================================================
# Headers
# ============================================================================

@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer abc", "abc"),
        ("abc", "abc"),
        ("Bearer ", None),
        ("Basic abc", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


def test_backend_headers_only_pass_authorization():
    headers = HeaderBuilder().build_backend_headers(
        {"authorization": "Bearer x", "cookie": "sid=1", "host": "shop.test"}
    )

    assert headers == {"Content-Type": "application/json", "Authorization": "Bearer x"}
