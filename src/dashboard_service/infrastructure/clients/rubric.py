"""Rubric (QPay) membership API client.

Rubric has no incremental or paginated endpoint: one POST returns every
membership ever sold. Records are validated and normalised here so nothing
downstream sees the raw payload.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import httpx
import orjson
import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from dashboard_service.config import Settings, get_settings
from dashboard_service.errors import SourceFetchError, SourceResponseError
from shared.clock import as_utc, utcnow

if TYPE_CHECKING:
    from dashboard_service.services.settings_cache import SyncSettings

logger = structlog.get_logger()


class RubricMember(BaseModel):
    """A normalised Rubric membership record."""

    fullname: str = Field(..., max_length=150)
    email: str = Field(..., max_length=255)
    phonenumber: str | None = Field(None, max_length=64)
    membership_id: str = Field(..., max_length=50)
    membership_type: str | None = Field(None, max_length=50)
    price_paid: Decimal | None = None
    payment_method: str | None = Field(None, max_length=50)
    is_valid: bool = False
    responses: Any | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        local, sep, domain = v.partition("@")
        if not (local and sep and "." in domain):
            raise ValueError("not a valid email address")
        return v


def parse_price(value: Any) -> Decimal | None:
    """Parse a price such as ``"$1,234.5"`` into ``Decimal("1234.50")``."""
    if value is None or value == "":
        return None
    cleaned = str(value).replace("$", "").replace(",", "").strip()
    try:
        return Decimal(cleaned).quantize(Decimal("0.01"))
    except InvalidOperation:
        logger.warning("Unparseable membership price", price=str(value))
        return None


def _parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        # Rubric timestamps are epoch milliseconds.
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def normalise_membership(raw: dict[str, Any]) -> RubricMember:
    """Turn one raw ``allMemberships`` entry into a :class:`RubricMember`."""
    phone = raw.get("phonenumber")
    membership_id = raw.get("membershipid")
    now = utcnow()
    return RubricMember(
        fullname=raw.get("fullname"),
        email=raw.get("email"),
        phonenumber=None if phone == "N/A" else phone,
        membership_id=str(membership_id) if membership_id is not None else None,
        membership_type=raw.get("membershiptype"),
        price_paid=parse_price(raw.get("pricepaid")),
        payment_method=raw.get("paymentmethod") or raw.get("paymentMethod"),
        is_valid=raw.get("isvalid") == 1,
        responses=raw.get("responses") or None,
        created_at=_parse_timestamp(raw.get("created")) or now,
        updated_at=_parse_timestamp(raw.get("updated")) or now,
    )


class RubricClient:
    """Async client for the Rubric membership export."""

    def __init__(
        self,
        url: str,
        email: str,
        session_id: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.email = email
        self.session_id = session_id
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_settings(
        cls,
        sync_settings: "SyncSettings",
        app_settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "RubricClient":
        """Build a client from site settings, raising if credentials are missing."""
        app_settings = app_settings or get_settings()
        url, email, session_id = sync_settings.require_rubric_credentials()
        return cls(
            url=url,
            email=email,
            session_id=session_id,
            timeout=app_settings.rubric_api_timeout,
            client=client,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RubricClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def fetch_members(self) -> list[RubricMember]:
        """Fetch and normalise every membership record."""
        details = orjson.dumps({"sessionid": self.session_id, "email": self.email}).decode()

        try:
            response = await self._client.post(self.url, data={"details": details})
        except httpx.HTTPError as e:
            logger.error("Rubric request failed", error=str(e))
            raise SourceFetchError(f"Failed to fetch members from Rubric: {e}") from e

        if response.status_code != 200:
            raise SourceFetchError(
                f"Failed to fetch members from Rubric: {response.reason_phrase or response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise SourceResponseError("Rubric API returned a non-JSON response") from e

        if isinstance(payload, dict) and payload.get("success") is False:
            reason = payload.get("error") or payload.get("usererror") or "Unknown error"
            raise SourceFetchError(f"Rubric API error: {reason}")

        memberships = payload.get("allMemberships") if isinstance(payload, dict) else None
        if not isinstance(memberships, list):
            raise SourceResponseError(
                "Expected allMemberships array from Rubric API, "
                f"got: {type(memberships).__name__}"
            )

        try:
            members = [normalise_membership(raw) for raw in memberships]
        except (ValidationError, AttributeError) as e:
            raise SourceResponseError(f"Invalid membership record from Rubric: {e}") from e

        logger.info("Fetched members from Rubric", count=len(members))
        return members
