"""Shared constants across the application."""

# Squarespace fulfillment statuses that seed a FULFILLED internal status
# (canceled orders are never packed or collected)
SOURCE_CLOSED_STATUSES = {"FULFILLED", "CANCELED"}

DEFAULT_SHIPPING_CARRIER = "auspost"

# Incremental order fetch looks back this far before the watermark
ORDER_WATERMARK_BACKDATE_DAYS = 1

# Adaptive member poll intervals (seconds)
MEMBER_POLL_HIGH_THRESHOLD = 10
MEMBER_POLL_INTERVAL_HIGH = 60
MEMBER_POLL_INTERVAL_MEDIUM = 60 * 5
MEMBER_POLL_INTERVAL_LOW = 60 * 30

# Membership payment statuses
PAYMENT_STATUS_COMPLETED = "completed"
PAYMENT_STATUS_PENDING = "pending"

# Activity log action types
ACTION_MEMBER_SYNCED = "MEMBER_SYNCED"
ACTION_ORDER_SYNCED = "ORDER_SYNCED"
ACTION_ORDER_STATUS_UPDATED = "ORDER_STATUS_UPDATED"
ACTION_ORDER_PACKED = "ORDER_PACKED"
ACTION_ORDER_FULFILLED = "ORDER_FULFILLED"
ACTION_ORDER_SHIPPED = "ORDER_SHIPPED"
ACTION_ORDER_DELETED = "ORDER_DELETED"
ACTION_SETTINGS_UPDATED = "SETTINGS_UPDATED"

# Order listing limits
DEFAULT_ORDERS_PAGE_LIMIT = 40
MAX_ORDERS_PAGE_LIMIT = 100
