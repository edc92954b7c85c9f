"""SQLAlchemy models for the committee dashboard.

Orders and memberships are mirrored from external systems (Squarespace and
Rubric); the site settings row holds their encrypted credentials and the
sync watermarks.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from shared.constants import DEFAULT_SHIPPING_CARRIER, PAYMENT_STATUS_PENDING


class Base(DeclarativeBase):
    """Base class for all models."""


# =============================================================================
# Enums
# =============================================================================


class FulfillmentStatus(str, PyEnum):
    """Internal fulfillment status of a merchandise order."""

    PENDING = "PENDING"
    PACKED = "PACKED"
    FULFILLED = "FULFILLED"


class ShippingStatus(str, PyEnum):
    """Shipping state, tracked locally only."""

    PENDING = "PENDING"
    SHIPPED = "SHIPPED"


# =============================================================================
# Site Settings
# =============================================================================


class SiteSettings(Base):
    """Singleton row of integration credentials and sync progress.

    Credential columns hold ciphertext produced by
    ``dashboard_service.infrastructure.crypto.encrypt``.
    """

    __tablename__ = "site_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Rubric (QPay) membership API
    rubric_url: Mapped[Optional[str]] = mapped_column(Text)
    rubric_email: Mapped[Optional[str]] = mapped_column(Text)
    rubric_session_id: Mapped[Optional[str]] = mapped_column(Text)
    rubric_membership_name: Mapped[Optional[str]] = mapped_column(Text)

    # Squarespace commerce API
    squarespace_api_key: Mapped[Optional[str]] = mapped_column(Text)
    squarespace_api_url: Mapped[Optional[str]] = mapped_column(Text)
    squarespace_api_version: Mapped[Optional[str]] = mapped_column(Text)

    # Product keyword selecting pub crawl shirt orders
    shirt_keyword: Mapped[Optional[str]] = mapped_column(Text)

    # Sync progress (not encrypted)
    last_squarespace_order_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    last_order_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_member_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# =============================================================================
# Orders
# =============================================================================


class Order(Base):
    """A Squarespace order containing at least one keyword-matching product.

    ``id`` is the Squarespace order ID. Fulfillment status is seeded from
    Squarespace and owned locally once it leaves PENDING.
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_number: Mapped[Optional[str]] = mapped_column(String(64))
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    fulfillment_status: Mapped[FulfillmentStatus] = mapped_column(
        Enum(FulfillmentStatus, native_enum=False, length=20),
        default=FulfillmentStatus.PENDING,
        nullable=False,
    )

    # Shipping
    shipping_status: Mapped[ShippingStatus] = mapped_column(
        Enum(ShippingStatus, native_enum=False, length=20),
        default=ShippingStatus.PENDING,
        nullable=False,
    )
    shipping_tracking_number: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_carrier: Mapped[Optional[str]] = mapped_column(
        String(50), default=DEFAULT_SHIPPING_CARRIER
    )
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_on: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    items: Mapped[list["OrderLineItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_orders_status_created", "fulfillment_status", "created_on"),
        Index("ix_orders_order_number", "order_number"),
        Index("ix_orders_customer_email", "customer_email"),
        Index("ix_orders_customer_name", "customer_name"),
        Index("ix_orders_synced_at", "synced_at"),
    )


class OrderLineItem(Base):
    """Line item of an order. Replaced wholesale on every sync of its order."""

    __tablename__ = "order_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_name: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    size: Mapped[Optional[str]] = mapped_column(String(50))
    image_url: Mapped[Optional[str]] = mapped_column(Text)

    order: Mapped[Order] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_order_line_items_order_id", "order_id"),
        Index("ix_order_line_items_product_name", "product_name"),
    )


# =============================================================================
# Memberships
# =============================================================================


class Member(Base):
    """A dues-paying society member mirrored from Rubric.

    Emails are stored lower-cased so the unique constraint is effectively
    case-insensitive.
    """

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fullname: Mapped[str] = mapped_column(String(150), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phonenumber: Mapped[Optional[str]] = mapped_column(String(64))
    membership_id: Mapped[Optional[str]] = mapped_column(String(50))
    membership_type: Mapped[Optional[str]] = mapped_column(String(50))
    price_paid: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2))
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    is_valid: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


Index("uq_members_email_lower", func.lower(Member.email), unique=True)


class MembershipPayment(Base):
    """Payment snapshot for a member, deduplicated on (member, transaction)."""

    __tablename__ = "membership_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("members.id"), nullable=False, index=True
    )
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2))
    method: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(50), default=PAYMENT_STATUS_PENDING)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class MembershipResponse(Base):
    """Sign-up form answers for a member (the raw Rubric responses block)."""

    __tablename__ = "membership_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("members.id"), nullable=False, index=True
    )
    responses: Mapped[Optional[Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# =============================================================================
# Activity Log
# =============================================================================


class ActivityLog(Base):
    """Audit trail of operator and sync actions."""

    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64))
    user_name: Mapped[Optional[str]] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50))
    entity_id: Mapped[Optional[str]] = mapped_column(String(64))
    details: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    __table_args__ = (Index("ix_activity_log_entity", "entity_type", "entity_id"),)
