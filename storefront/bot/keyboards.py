from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from storefront.constants import ORDER_STATUSES


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="/help"), KeyboardButton(text="/stats")],
            [KeyboardButton(text="/orders"), KeyboardButton(text="/products")],
            [KeyboardButton(text="/ping")],
        ],
        resize_keyboard=True,
    )


def statuses_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=s) for s in ORDER_STATUSES[:2]],
            [KeyboardButton(text=s) for s in ORDER_STATUSES[2:]],
            [KeyboardButton(text="/cancel")],
        ],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
