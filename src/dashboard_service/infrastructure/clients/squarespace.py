"""Squarespace Commerce API client.

Orders are read from the paginated ``/commerce/orders`` endpoint, which
returns orders newest first. Incremental fetches rely on that ordering and
stop at the first order older than the requested start date.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dashboard_service.config import Settings, get_settings
from dashboard_service.errors import SourceFetchError, SourceResponseError
from dashboard_service.infrastructure.database.models import FulfillmentStatus
from shared.clock import as_utc
from shared.constants import SOURCE_CLOSED_STATUSES

if TYPE_CHECKING:
    from dashboard_service.services.settings_cache import SyncSettings

logger = structlog.get_logger()


# =============================================================================
# Response models
# =============================================================================


class _SquarespaceModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class VariantOption(_SquarespaceModel):
    option_name: str
    value: str


class BillingAddress(_SquarespaceModel):
    first_name: str = ""
    last_name: str = ""


class SquarespaceLineItem(_SquarespaceModel):
    id: str
    product_name: str
    quantity: int = 1
    variant_options: list[VariantOption] | None = None
    image_url: str | None = None


class SquarespaceOrder(_SquarespaceModel):
    id: str
    order_number: str | None = None
    customer_email: str
    billing_address: BillingAddress | None = None
    fulfillment_status: str = "PENDING"
    created_on: datetime
    line_items: list[SquarespaceLineItem] = Field(default_factory=list)

    @property
    def customer_name(self) -> str:
        if self.billing_address is None:
            return "Unknown"
        return f"{self.billing_address.first_name} {self.billing_address.last_name}"

    @property
    def created_on_utc(self) -> datetime:
        return as_utc(self.created_on)


@dataclass
class OrderFetchResult:
    """Orders returned by a fetch and the newest order date encountered."""

    orders: list[SquarespaceOrder]
    latest_order_date: datetime | None


# =============================================================================
# Helpers
# =============================================================================


def map_fulfillment_status(source_status: str) -> FulfillmentStatus:
    """Map a Squarespace fulfillment status to the initial internal status."""
    if source_status in SOURCE_CLOSED_STATUSES:
        return FulfillmentStatus.FULFILLED
    return FulfillmentStatus.PENDING


def size_from_line_item(item: SquarespaceLineItem) -> str | None:
    """Value of the variant option named "size", if any."""
    for option in item.variant_options or []:
        if option.option_name.lower() == "size":
            return option.value or None
    return None


def filter_orders_by_keyword(
    orders: list[SquarespaceOrder], keyword: str
) -> list[SquarespaceOrder]:
    """Keep orders with a product matching ``keyword``, trimmed to those items."""
    needle = keyword.lower()
    filtered = []
    for order in orders:
        matching = [item for item in order.line_items if needle in item.product_name.lower()]
        if matching:
            filtered.append(order.model_copy(update={"line_items": matching}))
    return filtered


def resolve_orders_url(
    custom_url: str | None, api_version: str | None, app_settings: Settings
) -> str:
    """Build the orders endpoint from the configured URL and API version."""
    if custom_url and "/commerce/orders" in custom_url:
        return custom_url
    base_url = (custom_url or app_settings.squarespace_base_url).rstrip("/")
    version = api_version or app_settings.squarespace_api_version
    return f"{base_url}/{version}/commerce/orders"


def _upstream_message(error: httpx.HTTPError) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        try:
            body = error.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {error.response.status_code}"
    return str(error) or type(error).__name__


# =============================================================================
# Client
# =============================================================================


class SquarespaceClient:
    """Async client for reading orders from Squarespace."""

    def __init__(
        self,
        api_key: str,
        orders_url: str,
        user_agent: str = "AUES Dashboard",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.orders_url = orders_url
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": user_agent,
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_settings(
        cls,
        sync_settings: "SyncSettings",
        app_settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "SquarespaceClient":
        """Build a client from site settings, raising if no API key is set."""
        app_settings = app_settings or get_settings()
        api_key = sync_settings.require_squarespace_key()
        return cls(
            api_key=api_key,
            orders_url=resolve_orders_url(
                sync_settings.squarespace_api_url,
                sync_settings.squarespace_api_version,
                app_settings,
            ),
            user_agent=app_settings.squarespace_user_agent,
            timeout=app_settings.squarespace_api_timeout,
            client=client,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SquarespaceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def fetch_orders(self, since: datetime | None = None) -> OrderFetchResult:
        """Fetch orders, newest first, optionally only those since ``since``.

        Pagination stops at the first order older than ``since``. The newest
        ``createdOn`` seen is returned regardless of the cut-off. Any failure
        discards the pages already read.
        """
        since = as_utc(since)
        orders: list[SquarespaceOrder] = []
        latest: datetime | None = None
        url: str | None = self.orders_url
        params: dict[str, str] | None = None
        pages = 0

        logger.info(
            "Fetching Squarespace orders",
            since=since.isoformat() if since else None,
            mode="incremental" if since else "full",
        )

        try:
            while url:
                response = await self._client.get(url, headers=self._headers, params=params)
                response.raise_for_status()
                payload = response.json()
                pages += 1

                results = (payload.get("result") or []) if isinstance(payload, dict) else None
                if not isinstance(results, list):
                    raise SourceResponseError(
                        "Failed to fetch orders from Squarespace: "
                        f"unexpected response of type {type(payload).__name__}"
                    )

                page = [SquarespaceOrder.model_validate(raw) for raw in results]
                reached_old_orders = False

                for order in page:
                    created_on = order.created_on_utc
                    if latest is None or created_on > latest:
                        latest = created_on

                    if since is not None and created_on < since:
                        logger.info("Reached orders older than start date", order_id=order.id)
                        reached_old_orders = True
                        break

                    orders.append(order)

                url, params = None, None
                pagination = payload.get("pagination") or {}
                if pagination.get("hasNextPage") and not reached_old_orders:
                    if pagination.get("nextPageUrl"):
                        url = pagination["nextPageUrl"]
                    elif pagination.get("nextPageCursor"):
                        url = self.orders_url
                        params = {"cursor": pagination["nextPageCursor"]}
        except httpx.HTTPError as e:
            message = _upstream_message(e)
            logger.error("Squarespace order fetch failed", error=message, pages_read=pages)
            raise SourceFetchError(f"Failed to fetch orders from Squarespace: {message}") from e
        except ValueError as e:
            # Undecodable JSON or an order failing validation
            logger.error("Squarespace returned an invalid payload", error=str(e))
            raise SourceResponseError(
                f"Failed to fetch orders from Squarespace: invalid response ({e})"
            ) from e

        logger.info("Fetched Squarespace orders", count=len(orders), pages=pages)
        return OrderFetchResult(orders=orders, latest_order_date=latest)
