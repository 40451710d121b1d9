"""Request validation, timestamp and code extraction tests."""

import json

import pytest

from smsgate.core.codes import extract_code
from smsgate.core.timestamps import TimestampValidator, parse_timestamp_ms
from smsgate.core.validator import (
    RequestValidator,
    client_ip_from_headers,
    coerce_content,
    replace_lone_surrogates,
    resolve_code,
)
from smsgate.errors import ErrorCode, RejectedRequest
from smsgate.models import InboundEvent

from tests.conftest import API_TOKEN, auth_headers, make_body

NOW = 1_760_000_000.0


@pytest.fixture
def validator() -> RequestValidator:
    return RequestValidator(API_TOKEN, TimestampValidator(300, clock=lambda: NOW))


def body_at(**fields) -> bytes:
    fields.setdefault("timestamp", int(NOW * 1000))
    return make_body(**fields)


class TestAuthentication:
    def test_missing_header_rejected(self, validator):
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate({}, body_at(content="hi"))
        assert exc_info.value.code is ErrorCode.AUTH_FAILED
        assert exc_info.value.status_code == 401

    def test_wrong_token_rejected(self, validator):
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers("nope"), body_at(content="hi"))
        assert exc_info.value.message == "Unauthorized"

    def test_scheme_must_match_exactly(self, validator):
        with pytest.raises(RejectedRequest):
            validator.validate({"Authorization": f"bearer {API_TOKEN}"}, body_at(content="hi"))

    def test_surrounding_whitespace_is_trimmed(self, validator):
        event = validator.validate({"authorization": f"  Bearer {API_TOKEN}  "}, body_at(content="hi"))
        assert event.content == "hi"

    def test_auth_checked_before_body(self, validator):
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate({}, b"not json")
        assert exc_info.value.code is ErrorCode.AUTH_FAILED


class TestBody:
    def test_invalid_json(self, validator):
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), b"{not json")
        assert exc_info.value.code is ErrorCode.MALFORMED_BODY
        assert exc_info.value.message == "Invalid JSON"
        assert exc_info.value.status_code == 400

    def test_non_object_json_means_missing_content(self, validator):
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), b"[1, 2]")
        assert exc_info.value.message == "Missing or invalid content field"

    @pytest.mark.parametrize("content", [None, "", "   \n\t"])
    def test_empty_content(self, validator, content):
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), body_at(content=content))
        assert exc_info.value.code is ErrorCode.INVALID_CONTENT
        assert exc_info.value.message == "Missing or invalid content field"

    def test_missing_content_field(self, validator):
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), body_at(device="d"))
        assert exc_info.value.message == "Missing or invalid content field"

    def test_content_too_long(self, validator):
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), body_at(content="x" * 1001))
        assert exc_info.value.message == "Content too long"

    def test_content_at_limit_after_trim(self, validator):
        event = validator.validate(auth_headers(), body_at(content="  " + "x" * 1000 + "  "))
        assert len(event.content) == 1000

    @pytest.mark.parametrize(
        "raw, expected",
        [(123456, "123456"), (True, "true"), (False, "false"), (1.0, "1"), (2.5, "2.5")],
    )
    def test_content_coerced_to_string(self, validator, raw, expected):
        event = validator.validate(auth_headers(), body_at(content=raw))
        assert event.content == expected

    def test_device_defaults_to_unknown(self, validator):
        event = validator.validate(auth_headers(), body_at(content="hi", device=42))
        assert event.sender_id == "unknown"
        event = validator.validate(auth_headers(), body_at(content="hi", device="   "))
        assert event.sender_id == "unknown"

    def test_device_trimmed(self, validator):
        event = validator.validate(auth_headers(), body_at(content="hi", device=" iPhone-12 "))
        assert event.sender_id == "iPhone-12"

    def test_targets_only_from_list(self, validator):
        event = validator.validate(auth_headers(), body_at(content="hi", target=["me", None]))
        assert event.targets == ["me", None]
        event = validator.validate(auth_headers(), body_at(content="hi", target="me"))
        assert event.targets is None

    def test_client_ip_recorded(self, validator):
        headers = auth_headers(**{"X-Forwarded-For": "10.0.0.1, 10.0.0.2"})
        event = validator.validate(headers, body_at(content="hi"))
        assert event.client_ip == "10.0.0.1"

    def test_lone_surrogates_replaced(self, validator):
        body = (
            b'{"content": "code 1234 \\ud800", "device": "d\\udc00", "code": "\\ud801",'
            b' "target": ["\\ud802"], "timestamp": ' + str(int(NOW * 1000)).encode() + b"}"
        )
        event = validator.validate(auth_headers(), body)
        assert event.content == "code 1234 \ufffd"
        assert event.sender_id == "d\ufffd"
        assert event.declared_code == "\ufffd"
        assert event.targets == ["\ufffd"]
        event.content.encode("utf-8")


class TestTimestamp:
    def test_stale_timestamp_rejected(self, validator):
        body = body_at(content="hi", timestamp=int((NOW - 301) * 1000))
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), body)
        assert exc_info.value.code is ErrorCode.STALE_OR_FUTURE_TIMESTAMP
        assert exc_info.value.message == "Request expired (timestamp older than 300s)"

    def test_future_timestamp_rejected(self, validator):
        body = body_at(content="hi", timestamp=int((NOW + 301) * 1000))
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), body)
        assert "future" in exc_info.value.message

    def test_missing_timestamp(self, validator):
        body = json.dumps({"content": "hi"}).encode()
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), body)
        assert exc_info.value.message == "Missing timestamp"

    def test_content_checked_before_timestamp(self, validator):
        body = json.dumps({"content": ""}).encode()
        with pytest.raises(RejectedRequest) as exc_info:
            validator.validate(auth_headers(), body)
        assert exc_info.value.code is ErrorCode.INVALID_CONTENT

    def test_within_window(self):
        check = TimestampValidator(300, clock=lambda: NOW).validate(int((NOW - 299) * 1000))
        assert check.valid
        assert check.timestamp_ms == int((NOW - 299) * 1000)

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1_760_000_000_000, 1_760_000_000_000),
            (1_760_000_000, 1_760_000_000_000),
            ("1760000000000", 1_760_000_000_000),
            (1_760_000_000.5, 1_760_000_000_500),
            ("abc", None),
            (True, None),
            ([], None),
            ("", None),
        ],
    )
    def test_parse_timestamp(self, value, expected):
        assert parse_timestamp_ms(value) == expected

    def test_invalid_timestamp(self):
        check = TimestampValidator(300, clock=lambda: NOW).validate("yesterday")
        assert not check.valid
        assert check.error == "Invalid timestamp"


class TestCodeExtraction:
    @pytest.mark.parametrize(
        "content, expected",
        [
            ("Your code is 847291", "847291"),
            ("【招商银行】您的验证码为 482913，5分钟内有效。", "482913"),
            ("验证码：1234", "1234"),
            ("123456是您的登录验证码，请勿泄露", "123456"),
            ("847291 is your verification code", "847291"),
            ("Use OTP 99887766 to sign in", "99887766"),
            ("【京东】校验码 5566，订单 20251017123456 已发货", "5566"),
        ],
    )
    def test_extracts(self, content, expected):
        assert extract_code(content) == expected

    @pytest.mark.parametrize(
        "content",
        [
            "",
            "Meeting moved to 1530 tomorrow",
            "Your parcel 12345678901 has shipped",
            "Shopping total 1234 yuan",
            "Your code is 12",
        ],
    )
    def test_no_code(self, content):
        assert extract_code(content) is None

    def test_declared_code_wins(self):
        event = InboundEvent(content="Your code is 847291", declared_code="1111", timestamp_ms=0)
        assert resolve_code(event) == "1111"

    def test_falls_back_to_extraction(self):
        event = InboundEvent(content="Your code is 847291", timestamp_ms=0)
        assert resolve_code(event) == "847291"

    def test_declared_code_coerced(self, validator):
        event = validator.validate(auth_headers(), body_at(content="hi", code=4321))
        assert event.declared_code == "4321"
        event = validator.validate(auth_headers(), body_at(content="hi", code=""))
        assert event.declared_code is None


def test_coerce_content_containers():
    assert coerce_content({"a": "é"}) == '{"a": "é"}'
    assert coerce_content(None) == ""


def test_replace_lone_surrogates():
    assert replace_lone_surrogates("a\ud800b\udfff") == "a\ufffdb\ufffd"
    assert replace_lone_surrogates("\U0001f600 ok") == "\U0001f600 ok"


def test_client_ip_precedence():
    headers = {"cf-connecting-ip": " 1.1.1.1 ", "x-forwarded-for": "2.2.2.2"}
    assert client_ip_from_headers(headers) == "1.1.1.1"
    assert client_ip_from_headers({"x-forwarded-for": "2.2.2.2, 3.3.3.3"}) == "2.2.2.2"
    assert client_ip_from_headers({}) is None
