from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional

from supabase import AsyncClient, AsyncClientOptions, acreate_client

from storefront.config import settings
from storefront.constants import (
    STATUS_DELIVERED,
    TABLE_ORDER_ITEMS,
    TABLE_ORDERS,
    TABLE_PRODUCTS,
    TABLE_PROFILES,
)
from storefront.schemas import OrderIn, OrderItemIn, ProductIn

logger = logging.getLogger(__name__)


class Result(NamedTuple):
    data: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GatewayError(Exception):
    """Raised inside the gateway for contract violations the backend does not report itself."""


class AuthStorage:
    """
    Storage for a throwaway auth client. The OAuth start writes the PKCE code verifier
    here; it has to come back on the callback request, which runs on another client.
    """

    def __init__(self) -> None:
        self.items: Dict[str, str] = {}

    async def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    async def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def code_verifier(self) -> Optional[str]:
        for key, value in self.items.items():
            if key.endswith("-code-verifier"):
                return value
        return None


_client: Optional[AsyncClient] = None


async def _connect(
    fresh: bool = False,
    access_token: Optional[str] = None,
    storage: Optional[AuthStorage] = None,
) -> AsyncClient:
    """
    Shared anon client for public reads.

    access_token gives a per-request client whose table queries carry that user's JWT,
    so row-level security sees the user. fresh=True gives a throwaway client for auth
    flows. The shared client never holds a user token or session.
    """
    global _client
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError("Missing Supabase environment variables")
    if fresh or access_token or storage is not None:
        options = AsyncClientOptions(storage=storage) if storage is not None else None
        client = await acreate_client(settings.supabase_url, settings.supabase_key, options=options)
        if access_token:
            client.postgrest.auth(access_token)
        return client
    if _client is None:
        _client = await acreate_client(settings.supabase_url, settings.supabase_key)
    return _client


def _fail(op: str, e: Exception) -> Result:
    logger.error("%s failed: %s", op, e)
    return Result(None, e)


def _user_dict(user: Any) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    meta = getattr(user, "user_metadata", None) or {}
    return {
        "id": str(user.id),
        "email": getattr(user, "email", None) or "",
        "full_name": meta.get("full_name") or "",
    }


def _session_dict(resp: Any) -> Dict[str, Any]:
    session = getattr(resp, "session", None)
    return {
        "user": _user_dict(getattr(resp, "user", None)),
        "access_token": session.access_token if session else None,
    }


def extract_record_id(data: Any) -> Optional[str]:
    """Insert responses come back either as a list of rows or as a single row."""
    if isinstance(data, list):
        if data and isinstance(data[0], dict) and data[0].get("id"):
            return str(data[0]["id"])
        return None
    if isinstance(data, dict) and data.get("id"):
        return str(data["id"])
    return None


# ---------------- auth & profiles ----------------

async def sign_up(email: str, password: str, full_name: str) -> Result:
    try:
        client = await _connect(fresh=True)
        resp = await client.auth.sign_up({"email": email, "password": password})
        if resp.session is not None:
            client.postgrest.auth(resp.session.access_token)
        if resp.user is not None:
            await client.table(TABLE_PROFILES).insert(
                [{"id": str(resp.user.id), "email": email, "full_name": full_name}]
            ).execute()
        return Result(_session_dict(resp))
    except Exception as e:
        return _fail("sign_up", e)


async def sign_in(email: str, password: str) -> Result:
    try:
        client = await _connect(fresh=True)
        resp = await client.auth.sign_in_with_password({"email": email, "password": password})
        return Result(_session_dict(resp))
    except Exception as e:
        return _fail("sign_in", e)


async def sign_out(access_token: str) -> Result:
    try:
        client = await _connect(fresh=True)
        await client.auth.admin.sign_out(access_token)
        return Result(True)
    except Exception as e:
        return _fail("sign_out", e)


async def get_current_user(access_token: Optional[str]) -> Result:
    if not access_token:
        return Result(None)
    try:
        client = await _connect()
        resp = await client.auth.get_user(access_token)
        return Result(_user_dict(resp.user if resp else None))
    except Exception as e:
        return _fail("get_current_user", e)


async def sign_in_with_oauth(provider: str, redirect_to: str) -> Result:
    """
    data: {"url", "code_verifier"}. The verifier must be handed back to exchange_code;
    the client that generated it is gone by the time the provider redirects.
    """
    try:
        storage = AuthStorage()
        client = await _connect(fresh=True, storage=storage)
        resp = await client.auth.sign_in_with_oauth(
            {"provider": provider, "options": {"redirect_to": redirect_to}}
        )
        return Result({"url": resp.url, "code_verifier": storage.code_verifier()})
    except Exception as e:
        return _fail("sign_in_with_oauth", e)


async def exchange_code(code: str, code_verifier: Optional[str]) -> Result:
    try:
        if not code_verifier:
            raise GatewayError("OAuth code verifier is missing")
        client = await _connect(fresh=True)
        resp = await client.auth.exchange_code_for_session(
            {"auth_code": code, "code_verifier": code_verifier}
        )
        return Result(_session_dict(resp))
    except Exception as e:
        return _fail("exchange_code", e)


async def get_user_profile(user_id: str, access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_PROFILES).select("*").eq("id", user_id).execute()
        return Result(resp.data[0] if resp.data else None)
    except Exception as e:
        return _fail("get_user_profile", e)


async def ensure_user_profile(user: Dict[str, Any], access_token: Optional[str] = None) -> Result:
    """Profile row for users that came in through OAuth and never hit sign_up."""
    profile, error = await get_user_profile(user["id"], access_token=access_token)
    if error is not None:
        return Result(None, error)
    if profile:
        return Result(profile)

    email = user.get("email") or ""
    row = {
        "id": user["id"],
        "email": email,
        "full_name": user.get("full_name") or (email.split("@")[0] if email else "") or "User",
    }
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_PROFILES).insert([row]).execute()
        return Result(resp.data[0] if resp.data else row)
    except Exception as e:
        return _fail("ensure_user_profile", e)


async def get_is_admin(user_id: str, access_token: Optional[str] = None) -> Result:
    profile, error = await get_user_profile(user_id, access_token=access_token)
    if error is not None:
        return Result(False, error)
    return Result(bool(profile and profile.get("is_admin")))


# ---------------- products ----------------

async def get_products(limit: int = 20, offset: int = 0) -> Result:
    try:
        client = await _connect()
        resp = await (
            client.table(TABLE_PRODUCTS)
            .select("*")
            .eq("is_active", True)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return Result(resp.data or [])
    except Exception as e:
        return _fail("get_products", e)


async def get_product_by_id(product_id: str) -> Result:
    try:
        client = await _connect()
        resp = await client.table(TABLE_PRODUCTS).select("*").eq("id", product_id).single().execute()
        return Result(resp.data)
    except Exception as e:
        return _fail("get_product_by_id", e)


async def get_all_products(access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_PRODUCTS).select("*").order("created_at", desc=True).execute()
        return Result(resp.data or [])
    except Exception as e:
        return _fail("get_all_products", e)


async def create_product(product: ProductIn, access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_PRODUCTS).insert([product.model_dump()]).execute()
        return Result(resp.data)
    except Exception as e:
        return _fail("create_product", e)


async def update_product(
    product_id: str, updates: Dict[str, Any], access_token: Optional[str] = None
) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_PRODUCTS).update(updates).eq("id", product_id).execute()
        return Result(resp.data)
    except Exception as e:
        return _fail("update_product", e)


async def delete_product(product_id: str, access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_PRODUCTS).delete().eq("id", product_id).execute()
        return Result(resp.data)
    except Exception as e:
        return _fail("delete_product", e)


# ---------------- orders ----------------

async def create_order(order: OrderIn, access_token: Optional[str] = None) -> Result:
    """
    Inserts one order row and returns that row.

    The backend may answer with a list or a single record; the shape is settled
    here, so callers always get a dict with an "id" or an error.
    """
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_ORDERS).insert([order.model_dump()]).execute()
    except Exception as e:
        return _fail("create_order", e)

    data = resp.data
    order_id = extract_record_id(data)
    if not order_id:
        return _fail("create_order", GatewayError(f"no order id returned: {data!r}"))

    record = data[0] if isinstance(data, list) else data
    return Result({**record, "id": order_id})


async def get_orders_by_user_id(user_id: str, access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await (
            client.table(TABLE_ORDERS)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return Result(resp.data or [])
    except Exception as e:
        return _fail("get_orders_by_user_id", e)


async def get_order_by_id(order_id: str, access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_ORDERS).select("*").eq("id", order_id).single().execute()
        return Result(resp.data)
    except Exception as e:
        return _fail("get_order_by_id", e)


async def get_all_orders(status: Optional[str] = None, access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        query = client.table(TABLE_ORDERS).select("*")
        if status:
            query = query.eq("status", status)
        resp = await query.order("created_at", desc=True).execute()
        return Result(resp.data or [])
    except Exception as e:
        return _fail("get_all_orders", e)


async def update_order_status(order_id: str, status: str, access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await (
            client.table(TABLE_ORDERS)
            .update({"status": status, "updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", order_id)
            .execute()
        )
        return Result(resp.data)
    except Exception as e:
        return _fail("update_order_status", e)


# ---------------- order items ----------------

async def create_order_items(items: List[OrderItemIn], access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_ORDER_ITEMS).insert([it.model_dump() for it in items]).execute()
        return Result(resp.data)
    except Exception as e:
        return _fail("create_order_items", e)


async def get_order_items(order_id: str, access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        resp = await client.table(TABLE_ORDER_ITEMS).select("*").eq("order_id", order_id).execute()
        return Result(resp.data or [])
    except Exception as e:
        return _fail("get_order_items", e)


# ---------------- admin ----------------

async def _count(client: AsyncClient, table: str) -> int:
    resp = await client.table(table).select("*", count="exact", head=True).execute()
    return resp.count or 0


async def get_stats(access_token: Optional[str] = None) -> Result:
    try:
        client = await _connect(access_token=access_token)
        total_orders, total_products, total_customers = await asyncio.gather(
            _count(client, TABLE_ORDERS),
            _count(client, TABLE_PRODUCTS),
            _count(client, TABLE_PROFILES),
        )
        resp = await (
            client.table(TABLE_ORDERS)
            .select("total_amount")
            .eq("status", STATUS_DELIVERED)
            .execute()
        )
    except Exception as e:
        return _fail("get_stats", e)

    revenue = sum(float(r.get("total_amount") or 0) for r in (resp.data or []))
    return Result(
        {
            "total_orders": total_orders,
            "total_revenue": revenue,
            "total_products": total_products,
            "total_customers": total_customers,
        }
    )
