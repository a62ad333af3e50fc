"""
Protection guard: price, money and checkout elements are never modified.

Deliberately coarse. Any element inside a recognised price/cart region, or
whose own text contains a currency symbol, is off limits, so a title such as
"Save $5 today" is skipped too.
"""

from bs4 import Tag

from .dom import PageDocument

PROTECTED_CLASSES = ("price", "money")

PROTECTED_REGIONS = ", ".join([
    ".price",
    ".money",
    "[data-price]",
    "[data-product-price]",
    ".product__price",
    ".price__container",
    ".cart__total",
    ".cart-total",
    ".totals",
    "[data-cart-total]",
    ".checkout",
    "[data-checkout]",
])

CURRENCY_SYMBOLS = ("$", "€", "£", "¥", "₹", "₽", "₩", "₺", "₪", "zł")


def has_currency_symbol(text: str) -> bool:
    return any(symbol in (text or "") for symbol in CURRENCY_SYMBOLS)


def is_protected_element(element: Tag) -> bool:
    classes = element.get("class") or []
    if any(c in PROTECTED_CLASSES for c in classes):
        return True
    if PageDocument.closest(element, PROTECTED_REGIONS) is not None:
        return True
    return has_currency_symbol(element.get_text())
