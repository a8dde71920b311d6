"""Shared constants across the application."""

# Shopify Admin API
SHOPIFY_API_VERSION = "2025-07"
GID_PREFIX = "gid://"
SHOPIFY_GID_ROOT = "gid://shopify"

# Subscriber list metafield
METAFIELD_NAMESPACE = "backinstock"
METAFIELD_KEY = "notify_companies"
METAFIELD_TYPE = "json"

# Query page sizes
PRODUCT_VARIANTS_PAGE_SIZE = 100
SUBSCRIBED_VARIANTS_PAGE_SIZE = 100

# Shopify uses this title for the only variant of a product without options
DEFAULT_VARIANT_TITLE = "Default Title"

# Body field carrying the shared secret for the dispatcher and history store
DISPATCH_SECRET_FIELD = "flowSecretHeader"
# Response field echoing the dispatcher (OpenCart) reply back to Shopify Flow
DISPATCHER_RESPONSE_FIELD = "ocResponse"

# Headers
FLOW_SECRET_HEADER = "X-Flow-Secret"
REQUEST_ID_HEADER = "X-Request-ID"

# Skip reasons reported back to Shopify Flow
REASON_THRESHOLD_NOT_CROSSED = "Inventory threshold not crossed"
REASON_NO_SUBSCRIBERS = "No subscribed companies"
REASON_NO_EMAILS = "No company emails found"
