"""Price aggregation over installation items"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from .schemas import Addon, InstallationItem, LegacySingleItem, PriceBreakdown

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round2(amount: Decimal) -> Decimal:
    """Round a money amount to cents, half up"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def _money(value: Optional[Decimal]) -> Decimal:
    # Unpriced items contribute nothing until priced
    if value is None:
        return ZERO
    return max(ZERO, round2(value))


def addon_total(addons: Iterable[Addon]) -> Decimal:
    return sum((_money(addon.price) for addon in addons), ZERO)


def item_total(item: InstallationItem) -> Decimal:
    return _money(item.base_price) + addon_total(item.addons)


def aggregate_prices(items: Iterable[InstallationItem]) -> PriceBreakdown:
    """Sum base prices and addon prices across every item"""
    subtotal = ZERO
    addons = ZERO
    for item in items:
        subtotal += _money(item.base_price)
        addons += addon_total(item.addons)
    return PriceBreakdown(subtotal=subtotal, addon_total=addons, total=subtotal + addons)


def legacy_prices(legacy: LegacySingleItem) -> PriceBreakdown:
    """
    Totals for a session saved before multi-item support.

    Base price and addons are authoritative when present; sessions that only
    kept the stored totals fall back to them.
    """
    if legacy.base_price is not None or legacy.addons:
        subtotal = _money(legacy.base_price)
        addons = addon_total(legacy.addons)
        return PriceBreakdown(subtotal=subtotal, addon_total=addons, total=subtotal + addons)

    total = _money(legacy.legacy_total)
    addons = min(_money(legacy.legacy_addon_total), total)
    return PriceBreakdown(subtotal=total - addons, addon_total=addons, total=total)
