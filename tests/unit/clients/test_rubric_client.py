"""Unit tests for the Rubric membership client."""

import json
from decimal import Decimal
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from dashboard_service.errors import SourceFetchError, SourceResponseError
from dashboard_service.infrastructure.clients.rubric import (
    RubricClient,
    normalise_membership,
    parse_price,
)
from tests.fakes import rubric_membership

RUBRIC_URL = "https://rubric.example/api/memberships"


def make_client(handler: Any) -> RubricClient:
    return RubricClient(
        url=RUBRIC_URL,
        email="treasurer@example.com",
        session_id="sess-123",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def respond_with(payload: Any, status_code: int = 200) -> Any:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return handler


class TestFetchMembers:
    @pytest.mark.asyncio
    async def test_posts_credentials_as_form_details(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"allMemberships": []})

        assert await make_client(handler).fetch_members() == []

        request = requests[0]
        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        details = json.loads(parse_qs(request.content.decode())["details"][0])
        assert details == {"sessionid": "sess-123", "email": "treasurer@example.com"}

    @pytest.mark.asyncio
    async def test_normalises_records(self) -> None:
        payload = {
            "allMemberships": [
                rubric_membership("Alex@Example.com", 42, price="$1,234.5", responses={"q": "a"})
            ]
        }
        members = await make_client(respond_with(payload)).fetch_members()

        member = members[0]
        assert member.email == "alex@example.com"
        assert member.membership_id == "42"
        assert member.price_paid == Decimal("1234.50")
        assert member.phonenumber is None
        assert member.is_valid is True
        assert member.responses == {"q": "a"}
        assert member.created_at.year == 2023

    @pytest.mark.asyncio
    async def test_non_200_raises_fetch_error(self) -> None:
        with pytest.raises(SourceFetchError):
            await make_client(respond_with({}, status_code=502)).fetch_members()

    @pytest.mark.asyncio
    async def test_error_envelope_raises_fetch_error(self) -> None:
        payload = {"success": False, "error": "Session expired"}
        with pytest.raises(SourceFetchError, match="Session expired"):
            await make_client(respond_with(payload)).fetch_members()

    @pytest.mark.asyncio
    async def test_missing_array_names_received_type(self) -> None:
        with pytest.raises(SourceResponseError, match="got: dict"):
            await make_client(respond_with({"allMemberships": {"a": 1}})).fetch_members()

        with pytest.raises(SourceResponseError, match="got: NoneType"):
            await make_client(respond_with({"members": []})).fetch_members()

    @pytest.mark.asyncio
    async def test_invalid_record_raises_response_error(self) -> None:
        payload = {"allMemberships": [rubric_membership("not-an-email", 1)]}
        with pytest.raises(SourceResponseError):
            await make_client(respond_with(payload)).fetch_members()

    @pytest.mark.asyncio
    async def test_non_json_raises_response_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>login</html>")

        with pytest.raises(SourceResponseError):
            await make_client(handler).fetch_members()


class TestNormalisation:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("$15", Decimal("15.00")),
            ("$1,000.456", Decimal("1000.46")),
            (20, Decimal("20.00")),
            ("", None),
            (None, None),
            ("free", None),
        ],
    )
    def test_parse_price(self, raw: Any, expected: Decimal | None) -> None:
        assert parse_price(raw) == expected

    def test_validity_sentinel(self) -> None:
        assert normalise_membership(rubric_membership("a@example.com", 1, is_valid=1)).is_valid
        assert not normalise_membership(rubric_membership("a@example.com", 1, is_valid=0)).is_valid

    def test_payment_method_alias(self) -> None:
        raw = rubric_membership("a@example.com", 1)
        del raw["paymentmethod"]
        raw["paymentMethod"] = "cash"
        assert normalise_membership(raw).payment_method == "cash"

    def test_real_phone_kept(self) -> None:
        raw = rubric_membership("a@example.com", 1)
        raw["phonenumber"] = "0400 000 000"
        assert normalise_membership(raw).phonenumber == "0400 000 000"
