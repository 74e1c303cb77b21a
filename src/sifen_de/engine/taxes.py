"""Liquidación de IVA de un DE.

ES: Los precios incluyen IVA. Por ítem gravado, el IVA contenido es
    round(subtotal × tasa / (100 + tasa)); los ítems exentos van al
    subtotal exento. Los totales son la suma de los ítems. PYG redondea a
    unidades y USD a centavos (ROUND_HALF_UP).
EN: Prices include VAT. Per taxed item, the contained VAT is
    round(subtotal × rate / (100 + rate)); exempt items go to the exempt
    bucket. PYG rounds to units, USD to cents (ROUND_HALF_UP).
"""

from decimal import ROUND_HALF_UP, Decimal

from sifen_de.models.document import DEItem, TaxTotals
from sifen_de.models.enums import Currency, TaxRate

_QUANTUM: dict[Currency, Decimal] = {
    Currency.PYG: Decimal("1"),
    Currency.USD: Decimal("0.01"),
}


def round_amount(amount: Decimal, currency: Currency) -> Decimal:
    """Redondea un importe a la precisión de la moneda."""
    return amount.quantize(_QUANTUM[currency], rounding=ROUND_HALF_UP)


def item_tax(item: DEItem, currency: Currency) -> Decimal:
    """IVA contenido en el subtotal de un ítem (0 si es exento)."""
    rate = Decimal(int(item.tax_rate))
    if not rate:
        return Decimal("0")
    return round_amount(item.subtotal * rate / (Decimal("100") + rate), currency)


def compute_totals(items: list[DEItem], currency: Currency = Currency.PYG) -> TaxTotals:
    """Calcula subtotales por tasa, IVA y total general.

    Example:
        Un ítem {cantidad 2, precio 55000, IVA 10%} da IVA 10 = 10000,
        exento = 0 y total general = 110000.
    """
    subtotals: dict[TaxRate, Decimal] = {rate: Decimal("0") for rate in TaxRate}
    taxes: dict[TaxRate, Decimal] = {rate: Decimal("0") for rate in TaxRate}

    for item in items:
        subtotals[item.tax_rate] += round_amount(item.subtotal, currency)
        taxes[item.tax_rate] += item_tax(item, currency)

    total_tax = taxes[TaxRate.IVA_5] + taxes[TaxRate.IVA_10]
    grand_total = sum(subtotals.values(), Decimal("0"))

    return TaxTotals(
        subtotal_exempt=subtotals[TaxRate.EXENTO],
        subtotal_5=subtotals[TaxRate.IVA_5],
        subtotal_10=subtotals[TaxRate.IVA_10],
        tax_5=taxes[TaxRate.IVA_5],
        tax_10=taxes[TaxRate.IVA_10],
        total_tax=total_tax,
        grand_total=grand_total,
    )
