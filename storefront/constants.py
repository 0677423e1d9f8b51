TABLE_PROFILES = "user_profiles"
TABLE_PRODUCTS = "products"
TABLE_ORDERS = "orders"
TABLE_ORDER_ITEMS = "order_items"

# порядок важен: так статусы показываются в админке и в боте
ORDER_STATUSES = ("pending", "processing", "shipped", "delivered")
STATUS_PENDING = "pending"
STATUS_DELIVERED = "delivered"

PAYMENT_CASH_ON_DELIVERY = "cash_on_delivery"

CART_STORAGE_KEY = "cart-storage"
CART_STORAGE_VERSION = 0

CART_COOKIE = "cart_id"
SESSION_COOKIE = "sb-access-token"
OAUTH_VERIFIER_COOKIE = "sb-code-verifier"

STATUS_COLORS = {
    "pending": "bg-yellow-100 text-yellow-800",
    "processing": "bg-blue-100 text-blue-800",
    "shipped": "bg-purple-100 text-purple-800",
    "delivered": "bg-green-100 text-green-800",
}
STATUS_COLOR_DEFAULT = "bg-gray-100 text-gray-800"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
