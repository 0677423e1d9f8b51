from typing import Iterable


def line_total(price: float, quantity: int) -> float:
    return float(price) * int(quantity)


def cart_total(items: Iterable) -> float:
    return sum(line_total(it.price, it.quantity) for it in items)
