from aiogram import Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, ReplyKeyboardRemove

from storefront.bot.keyboards import main_kb, statuses_kb
from storefront.bot.states import OrderStatusEdit
from storefront.config import settings
from storefront.constants import ORDER_STATUSES
from storefront.db import gateway
from storefront.services import admin
from storefront.utils.formatters import money, status_label

router = Router()

ORDERS_LIMIT = 20


def _is_admin(message: Message) -> bool:
    try:
        return int(message.from_user.id) == int(settings.admin_id)
    except Exception:
        return False


def _order_line(o: dict) -> str:
    return (
        f"• <code>{o['id']}</code> {o.get('customer_name', '')} — "
        f"{money(o.get('total_amount', 0))} [{status_label(o.get('status', ''))}]"
    )


@router.message(Command("start"))
async def cmd_start(message: Message):
    if not _is_admin(message):
        return
    await message.answer("✅ Storefront admin bot запущен", reply_markup=main_kb())


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    await state.clear()
    await message.answer("❎ Отменено.", reply_markup=ReplyKeyboardRemove())


@router.message(Command("help"))
async def cmd_help(message: Message):
    if not _is_admin(message):
        return

    text = (
        "<b>Storefront admin — команды</b>\n\n"
        "/ping — проверка\n"
        "/stats — заказы, выручка (delivered), товары, клиенты\n"
        "/orders [STATUS] — последние заказы\n"
        "/order ID — заказ с позициями\n"
        "/set_status ID [STATUS] — сменить статус заказа\n"
        "/products — список товаров\n"
        "/cancel — отмена ввода\n\n"
        f"Статусы: {', '.join(ORDER_STATUSES)}"
    )
    await message.answer(text)


@router.message(Command("ping"))
async def cmd_ping(message: Message):
    if not _is_admin(message):
        return
    await message.answer("pong ✅")


@router.message(Command("stats"))
async def cmd_stats(message: Message):
    if not _is_admin(message):
        return

    stats, error = await gateway.get_stats()
    if error is not None:
        await message.answer(f"❌ {error}")
        return

    await message.answer(
        "<b>Статистика</b>\n"
        f"Заказы: {stats['total_orders']}\n"
        f"Выручка (delivered): {money(stats['total_revenue'])}\n"
        f"Товары: {stats['total_products']}\n"
        f"Клиенты: {stats['total_customers']}"
    )


@router.message(Command("orders"))
async def cmd_orders(message: Message):
    if not _is_admin(message):
        return

    parts = message.text.split()
    status = parts[1].strip().lower() if len(parts) > 1 else None
    if status and status not in ORDER_STATUSES:
        await message.answer(f"Статус должен быть одним из: {', '.join(ORDER_STATUSES)}")
        return

    orders, error = await gateway.get_all_orders(status)
    if error is not None:
        await message.answer(f"❌ {error}")
        return
    if not orders:
        await message.answer("Заказов нет.")
        return

    lines = ["<b>Заказы:</b>"]
    lines.extend(_order_line(o) for o in orders[:ORDERS_LIMIT])
    if len(orders) > ORDERS_LIMIT:
        lines.append(f"… и ещё {len(orders) - ORDERS_LIMIT}")
    await message.answer("\n".join(lines))


@router.message(Command("order"))
async def cmd_order(message: Message):
    if not _is_admin(message):
        return

    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Формат: /order ID")
        return

    order_id = parts[1]
    order, error = await gateway.get_order_by_id(order_id)
    if error is not None or not order:
        await message.answer("❌ Заказ не найден")
        return
    items, error = await gateway.get_order_items(order_id)
    if error is not None:
        await message.answer(f"❌ {error}")
        return

    lines = [
        f"<b>Заказ {order['id']}</b> [{status_label(order.get('status', ''))}]",
        f"{order.get('customer_name', '')}, {order.get('customer_phone', '')}",
        f"{order.get('address', '')}, {order.get('city', '')} {order.get('zip_code', '')}",
        "",
    ]
    if not items:
        lines.append("  (позиций нет)")
    for it in items:
        size = f" / {it['size']}" if it.get("size") else ""
        lines.append(f"  • {it['product_id']}{size} × {it['quantity']} @ {money(it['price'])}")
    lines.append("")
    lines.append(f"Итого: {money(order.get('total_amount', 0))}")
    await message.answer("\n".join(lines))


async def _apply_status(message: Message, order_id: str, status: str) -> None:
    _, error = await admin.update_order_status(order_id, status)
    if error is not None:
        await message.answer(f"❌ {error}", reply_markup=ReplyKeyboardRemove())
        return
    await message.answer(
        f"✅ Заказ {order_id}: {status_label(status.strip().lower())}",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(Command("set_status"))
async def cmd_set_status(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    parts = message.text.split()
    if len(parts) not in (2, 3):
        await message.answer("Формат: /set_status ID [STATUS]")
        return

    if len(parts) == 3:
        await _apply_status(message, parts[1], parts[2])
        return

    await state.set_state(OrderStatusEdit.waiting_status)
    await state.update_data(order_id=parts[1])
    await message.answer("Выберите новый статус.\nОтмена: /cancel", reply_markup=statuses_kb())


@router.message(OrderStatusEdit.waiting_status)
async def set_status_wait_status(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    raw = (message.text or "").strip()
    if raw == "/cancel":
        await state.clear()
        await message.answer("❎ Отменено.", reply_markup=ReplyKeyboardRemove())
        return

    if raw.lower() not in ORDER_STATUSES:
        await message.answer("Выберите статус кнопкой. Отмена: /cancel", reply_markup=statuses_kb())
        return

    data = await state.get_data()
    try:
        await _apply_status(message, str(data.get("order_id", "")), raw)
    finally:
        await state.clear()


@router.message(Command("products"))
async def cmd_products(message: Message):
    if not _is_admin(message):
        return

    rows, error = await gateway.get_all_products()
    if error is not None:
        await message.answer(f"❌ {error}")
        return
    if not rows:
        await message.answer("Товаров пока нет.")
        return

    lines = ["<b>Товары:</b>"]
    for r in rows:
        active = "" if r.get("is_active", True) else " (скрыт)"
        lines.append(f"• {r['name']} — {money(r.get('price', 0))}, остаток {r.get('stock', 0)}{active}")
    await message.answer("\n".join(lines))
