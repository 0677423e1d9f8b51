from storefront.config import settings
from storefront.constants import STATUS_COLOR_DEFAULT, STATUS_COLORS


def money(v: float) -> str:
    return f"{float(v or 0):.{settings.decimals}f} {settings.currency}"


def status_label(status: str) -> str:
    return (status or "").capitalize()


def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, STATUS_COLOR_DEFAULT)
