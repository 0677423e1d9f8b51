from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from storefront.config import missing_backend_settings, settings, validate_env
from storefront.constants import (
    CART_COOKIE,
    LOG_FORMAT,
    OAUTH_VERIFIER_COOKIE,
    ORDER_STATUSES,
    SESSION_COOKIE,
)
from storefront.db import gateway
from storefront.schemas import ShippingForm
from storefront.services import admin
from storefront.services.cart import CartItem, CartStore, FileStorage
from storefront.services.checkout import CheckoutWorkflow
from storefront.services.receipt_pdf import generate_receipt_pdf
from storefront.utils.formatters import money, status_color, status_label
from storefront.utils.validators import coerce_quantity

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

CART_ID_RE = re.compile(r"^[0-9a-f]{32}$")

app = FastAPI(title="Storefront")

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["money"] = money
templates.env.filters["status_label"] = status_label
templates.env.filters["status_color"] = status_color

if STATIC_DIR.exists():
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


@app.on_event("startup")
def _startup() -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    validate_env(settings)


@app.middleware("http")
async def cart_cookie_middleware(request: Request, call_next):
    """Every browser gets its own cart id; the cart itself is stored server-side."""
    cart_id = request.cookies.get(CART_COOKIE, "")
    is_new = not CART_ID_RE.match(cart_id)
    if is_new:
        cart_id = uuid.uuid4().hex
    request.state.cart_id = cart_id

    response = await call_next(request)
    if is_new:
        response.set_cookie(CART_COOKIE, cart_id, max_age=60 * 60 * 24 * 365, httponly=True, samesite="lax")
    return response


# ---------------- dependencies ----------------

def get_cart_store(request: Request) -> CartStore:
    return CartStore(FileStorage(Path(settings.cart_dir) / request.state.cart_id))


async def get_current_user(request: Request) -> Optional[Dict[str, Any]]:
    """The signed-in user; "access_token" is what data calls made for them carry."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    user, error = await gateway.get_current_user(token)
    if error is not None or not user:
        return None
    return {**user, "access_token": token}


def _token(user: Optional[Dict[str, Any]]) -> Optional[str]:
    return (user or {}).get("access_token")


def _render(
    request: Request,
    name: str,
    ctx: dict[str, Any],
    user: Optional[Dict[str, Any]] = None,
    cart: Optional[CartStore] = None,
    status_code: int = 200,
) -> HTMLResponse:
    base = {
        "user": user,
        "cart_count": cart.get_total_items() if cart is not None else 0,
        "message": request.query_params.get("msg", ""),
    }
    base.update(ctx)
    return templates.TemplateResponse(request, name, base, status_code=status_code)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def _redirect_msg(path: str, msg: str) -> RedirectResponse:
    return _redirect(f"{path}?msg={quote(msg)}")


def _error_text(error: Exception) -> str:
    return getattr(error, "message", None) or str(error) or error.__class__.__name__


@app.get("/health")
def health():
    missing = missing_backend_settings(settings)
    return JSONResponse(content={"status": "ok", "backend_configured": not missing, "missing": missing})


# ---------------- storefront ----------------

@app.get("/", response_class=HTMLResponse)
@app.get("/shop", response_class=HTMLResponse)
async def shop(
    request: Request,
    page: int = 1,
    user=Depends(get_current_user),
    cart: CartStore = Depends(get_cart_store),
):
    page = max(1, page)
    limit = settings.page_size
    products, error = await gateway.get_products(limit=limit, offset=(page - 1) * limit)
    return _render(
        request,
        "shop.html",
        {
            "products": products or [],
            "error": _error_text(error) if error else "",
            "page": page,
            "has_next": bool(products) and len(products) == limit,
        },
        user=user,
        cart=cart,
    )


@app.get("/product/{product_id}", response_class=HTMLResponse)
async def product_detail(
    request: Request,
    product_id: str,
    user=Depends(get_current_user),
    cart: CartStore = Depends(get_cart_store),
):
    product, error = await gateway.get_product_by_id(product_id)
    if error is not None or not product:
        return _render(request, "error.html", {"error": "Product not found"}, user=user, cart=cart, status_code=404)
    return _render(request, "product.html", {"product": product}, user=user, cart=cart)


@app.post("/product/{product_id}/add")
async def product_add_to_cart(
    product_id: str,
    quantity: str = Form("1"),
    size: str = Form(""),
    cart: CartStore = Depends(get_cart_store),
):
    product, error = await gateway.get_product_by_id(product_id)
    if error is not None or not product:
        return _redirect_msg(f"/product/{product_id}", "Product not found")

    cart.add_item(
        CartItem(
            product_id=str(product["id"]),
            name=product.get("name", ""),
            price=float(product.get("price", 0)),
            quantity=coerce_quantity(quantity),
            size=size.strip() or None,
            image=product.get("image_url") or "",
        )
    )
    return _redirect_msg(f"/product/{product_id}", "Added to cart!")


# ---------------- cart & checkout ----------------

@app.get("/cart", response_class=HTMLResponse)
async def cart_view(
    request: Request,
    checkout: int = 0,
    user=Depends(get_current_user),
    cart: CartStore = Depends(get_cart_store),
):
    form = ShippingForm(customer_email=(user or {}).get("email", ""))
    return _render(
        request,
        "cart.html",
        {"items": cart.items, "total": cart.get_total_price(), "show_checkout": bool(checkout), "form": form},
        user=user,
        cart=cart,
    )


@app.post("/cart/update")
def cart_update(
    product_id: str = Form(...),
    quantity: str = Form("1"),
    cart: CartStore = Depends(get_cart_store),
):
    cart.update_quantity(product_id, coerce_quantity(quantity))
    return _redirect("/cart")


@app.post("/cart/remove")
def cart_remove(product_id: str = Form(...), cart: CartStore = Depends(get_cart_store)):
    cart.remove_item(product_id)
    return _redirect("/cart")


@app.post("/cart/checkout")
async def cart_checkout(
    request: Request,
    customer_name: str = Form(""),
    customer_email: str = Form(""),
    customer_phone: str = Form(""),
    address: str = Form(""),
    city: str = Form(""),
    zip_code: str = Form(""),
    user=Depends(get_current_user),
    cart: CartStore = Depends(get_cart_store),
):
    form = ShippingForm(
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        address=address,
        city=city,
        zip_code=zip_code,
    )
    outcome = await CheckoutWorkflow(cart).run(user, form)
    if outcome.redirect_to:
        return _redirect(outcome.redirect_to)

    return _render(
        request,
        "cart.html",
        {
            "items": cart.items,
            "total": cart.get_total_price(),
            "show_checkout": True,
            "form": form,
            "error": outcome.message,
        },
        user=user,
        cart=cart,
        status_code=400,
    )


# ---------------- orders ----------------

async def _own_order(order_id: str, user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """The order, or None when it is missing or belongs to someone else (admins see all)."""
    order, error = await gateway.get_order_by_id(order_id, access_token=_token(user))
    if error is not None or not order:
        return None
    if str(order.get("user_id")) != str(user["id"]) and not await admin.is_admin(user):
        logger.warning("user %s asked for order %s of another customer", user["id"], order_id)
        return None
    return order


@app.get("/order-confirmation/{order_id}", response_class=HTMLResponse)
async def order_confirmation(
    request: Request,
    order_id: str,
    user=Depends(get_current_user),
    cart: CartStore = Depends(get_cart_store),
):
    if not user:
        return _redirect("/auth/login")
    order = await _own_order(order_id, user)
    items, error = [], None
    if order:
        items, error = await gateway.get_order_items(order_id, access_token=_token(user))
    if error is not None or not order:
        return _render(request, "error.html", {"error": "Order not found"}, user=user, cart=cart, status_code=404)
    return _render(request, "order_confirmation.html", {"order": order, "items": items}, user=user, cart=cart)


@app.get("/order-confirmation/{order_id}/receipt.pdf")
async def order_receipt(order_id: str, user=Depends(get_current_user)):
    if not user:
        return _redirect("/auth/login")
    order = await _own_order(order_id, user)
    if not order:
        return JSONResponse(status_code=404, content={"detail": "Order not found"})
    items, error = await gateway.get_order_items(order_id, access_token=_token(user))
    if error is not None:
        return JSONResponse(status_code=502, content={"detail": _error_text(error)})

    return Response(
        content=generate_receipt_pdf(order, items),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="receipt_{order["id"]}.pdf"'},
    )


@app.get("/orders", response_class=HTMLResponse)
async def order_history(
    request: Request,
    user=Depends(get_current_user),
    cart: CartStore = Depends(get_cart_store),
):
    if not user:
        return _redirect("/auth/login")
    orders, error = await gateway.get_orders_by_user_id(user["id"], access_token=_token(user))
    return _render(
        request,
        "orders.html",
        {"orders": orders or [], "error": _error_text(error) if error else ""},
        user=user,
        cart=cart,
    )


# ---------------- admin ----------------

async def _admin_guard(user) -> Optional[RedirectResponse]:
    if not user:
        return _redirect("/auth/login")
    if not await admin.is_admin(user):
        return _redirect("/")
    return None


async def _admin_page(request: Request, tab: str, user, cart: CartStore) -> HTMLResponse:
    dashboard, error = await admin.load_dashboard(access_token=_token(user))
    return _render(
        request,
        "admin.html",
        {
            "tab": tab,
            "dashboard": dashboard or admin.AdminDashboard(),
            "error": _error_text(error) if error else "",
            "statuses": ORDER_STATUSES,
        },
        user=user,
        cart=cart,
    )


@app.get("/admin", response_class=HTMLResponse)
async def admin_dashboard(request: Request, user=Depends(get_current_user), cart: CartStore = Depends(get_cart_store)):
    denied = await _admin_guard(user)
    return denied or await _admin_page(request, "dashboard", user, cart)


@app.get("/admin/orders", response_class=HTMLResponse)
async def admin_orders(request: Request, user=Depends(get_current_user), cart: CartStore = Depends(get_cart_store)):
    denied = await _admin_guard(user)
    return denied or await _admin_page(request, "orders", user, cart)


@app.get("/admin/products", response_class=HTMLResponse)
async def admin_products(request: Request, user=Depends(get_current_user), cart: CartStore = Depends(get_cart_store)):
    denied = await _admin_guard(user)
    return denied or await _admin_page(request, "products", user, cart)


@app.post("/admin/products")
async def admin_products_add(
    name: str = Form(...),
    description: str = Form(""),
    price: str = Form("0"),
    image_url: str = Form(""),
    category: str = Form(""),
    sizes: str = Form(""),
    colors: str = Form(""),
    stock: str = Form("0"),
    user=Depends(get_current_user),
):
    denied = await _admin_guard(user)
    if denied:
        return denied
    form = admin.ProductForm(name, description, price, image_url, category, sizes, colors, stock)
    _, error = await admin.create_product(form, access_token=_token(user))
    msg = "Product added" if error is None else f"Failed to add product: {_error_text(error)}"
    return _redirect_msg("/admin/products", msg)


@app.post("/admin/products/{product_id}/edit")
async def admin_products_edit(
    product_id: str,
    name: str = Form(...),
    description: str = Form(""),
    price: str = Form("0"),
    image_url: str = Form(""),
    category: str = Form(""),
    sizes: str = Form(""),
    colors: str = Form(""),
    stock: str = Form("0"),
    user=Depends(get_current_user),
):
    denied = await _admin_guard(user)
    if denied:
        return denied
    form = admin.ProductForm(name, description, price, image_url, category, sizes, colors, stock)
    _, error = await admin.update_product(product_id, form, access_token=_token(user))
    msg = "Product updated" if error is None else f"Failed to update product: {_error_text(error)}"
    return _redirect_msg("/admin/products", msg)


@app.post("/admin/products/{product_id}/delete")
async def admin_products_delete(product_id: str, user=Depends(get_current_user)):
    denied = await _admin_guard(user)
    if denied:
        return denied
    _, error = await admin.delete_product(product_id, access_token=_token(user))
    msg = "Product deleted" if error is None else f"Failed to delete product: {_error_text(error)}"
    return _redirect_msg("/admin/products", msg)


@app.post("/admin/orders/{order_id}/status")
async def admin_orders_status(order_id: str, status: str = Form(...), user=Depends(get_current_user)):
    denied = await _admin_guard(user)
    if denied:
        return denied
    _, error = await admin.update_order_status(order_id, status, access_token=_token(user))
    msg = "Order updated" if error is None else f"Failed to update order: {_error_text(error)}"
    return _redirect_msg("/admin/orders", msg)


# ---------------- auth ----------------

def _with_session(response: RedirectResponse, session: Dict[str, Any]) -> RedirectResponse:
    if session.get("access_token"):
        response.set_cookie(SESSION_COOKIE, session["access_token"], httponly=True, samesite="lax")
    return response


@app.get("/auth/login", response_class=HTMLResponse)
def login_get(request: Request):
    return _render(request, "login.html", {"mode": "login"})


@app.post("/auth/login")
async def login_post(request: Request, email: str = Form(...), password: str = Form(...)):
    session, error = await gateway.sign_in(email.strip(), password)
    if error is not None or not session.get("access_token"):
        text = _error_text(error) if error else "Invalid login"
        return _render(request, "login.html", {"mode": "login", "error": text}, status_code=400)
    return _with_session(_redirect("/"), session)


@app.get("/auth/signup", response_class=HTMLResponse)
def signup_get(request: Request):
    return _render(request, "login.html", {"mode": "signup"})


@app.post("/auth/signup")
async def signup_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    full_name: str = Form(""),
):
    session, error = await gateway.sign_up(email.strip(), password, full_name.strip())
    if error is not None:
        return _render(request, "login.html", {"mode": "signup", "error": _error_text(error)}, status_code=400)
    if not session.get("access_token"):
        # подтверждение email включено: сессии ещё нет
        return _redirect_msg("/auth/login", "Check your email to confirm the account")
    return _with_session(_redirect("/"), session)


@app.post("/auth/logout")
async def logout(request: Request):
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        await gateway.sign_out(token)
    response = _redirect("/")
    response.delete_cookie(SESSION_COOKIE)
    return response


@app.get("/auth/oauth/{provider}")
async def oauth_start(provider: str):
    flow, error = await gateway.sign_in_with_oauth(provider, f"{settings.site_url}/auth/callback")
    if error is not None or not flow.get("url"):
        return _redirect_msg("/auth/login", "Sign in is not available")
    response = RedirectResponse(url=flow["url"], status_code=303)
    if flow.get("code_verifier"):
        # живёт до колбэка провайдера
        response.set_cookie(
            OAUTH_VERIFIER_COOKIE, flow["code_verifier"], max_age=600, httponly=True, samesite="lax"
        )
    return response


@app.get("/auth/callback")
async def oauth_callback(request: Request, code: str = ""):
    if not code:
        return _redirect("/auth/login")
    session, error = await gateway.exchange_code(code, request.cookies.get(OAUTH_VERIFIER_COOKIE))
    if error is not None or not session.get("user"):
        response = _redirect_msg("/auth/login", "Sign in failed, please try again")
    else:
        _, error = await gateway.ensure_user_profile(session["user"], access_token=session.get("access_token"))
        if error is not None:
            logger.warning("oauth callback: profile for %s not created: %s", session["user"]["id"], error)
        response = _with_session(_redirect("/"), session)
    response.delete_cookie(OAUTH_VERIFIER_COOKIE)
    return response
