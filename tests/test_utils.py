import pytest

from storefront.services.pricing import cart_total, line_total
from storefront.services.cart import CartItem
from storefront.utils.formatters import money, status_color, status_label
from storefront.utils.validators import coerce_quantity, split_csv


@pytest.mark.parametrize(
    "status, css",
    [
        ("pending", "bg-yellow-100 text-yellow-800"),
        ("processing", "bg-blue-100 text-blue-800"),
        ("shipped", "bg-purple-100 text-purple-800"),
        ("delivered", "bg-green-100 text-green-800"),
        ("refunded", "bg-gray-100 text-gray-800"),
    ],
)
def test_status_color(status, css):
    assert status_color(status) == css


def test_status_label():
    assert status_label("shipped") == "Shipped"
    assert status_label("") == ""


def test_money():
    assert money(40) == "40.00 USD"
    assert money(None) == "0.00 USD"


@pytest.mark.parametrize("raw, expected", [("3", 3), ("0", 1), ("-2", 1), ("abc", 1), (None, 1), (" 5 ", 5)])
def test_coerce_quantity(raw, expected):
    assert coerce_quantity(raw) == expected


def test_split_csv():
    assert split_csv(" S, M ,,L") == ["S", "M", "L"]
    assert split_csv("") == []
    assert split_csv(None) == []


def test_totals():
    assert line_total(2.5, 4) == 10.0
    items = [CartItem("a", "A", 20.0, 2), CartItem("b", "B", 1.5, 3)]
    assert cart_total(items) == 44.5
    assert cart_total([]) == 0
