"""
Cálculo de totais do orçamento

Valores em Decimal, arredondados em centavos (ROUND_HALF_UP).
Funções puras, sem acesso ao banco.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Union

from winnet_crm.core.middleware import ValidationException

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, str, float]


@dataclass(frozen=True)
class QuoteTotals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() evita herdar o erro binário de floats
    return Decimal(str(value))


def to_cents(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _field(item: Any, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name)


def _line_amount(quantity: Number, unit_price: Number) -> Decimal:
    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    if quantity < 0:
        raise ValidationException("Quantidade não pode ser negativa", details={"quantity": str(quantity)})
    if unit_price < 0:
        raise ValidationException("Valor unitário não pode ser negativo", details={"unit_price": str(unit_price)})
    return quantity * unit_price


def line_total(quantity: Number, unit_price: Number) -> Decimal:
    """Total do item = quantidade x valor unitário, em centavos"""
    return to_cents(_line_amount(quantity, unit_price))


def compute_totals(line_items: Iterable[Any], discount_percent: Number = 0) -> QuoteTotals:
    """
    Calcula subtotal, desconto e total

    subtotal = soma(quantidade x valor unitário)
    desconto = subtotal x percentual / 100
    total    = subtotal - desconto

    Aceita itens como objetos (atributos quantity/unit_price) ou dicts.
    """
    discount_percent = to_decimal(discount_percent)
    if discount_percent < 0 or discount_percent > HUNDRED:
        raise ValidationException(
            "Percentual de desconto deve estar entre 0 e 100",
            details={"discount_percent": str(discount_percent)}
        )

    # Arredonda uma vez, sobre a soma exata dos itens
    subtotal = sum(
        (_line_amount(_field(item, "quantity"), _field(item, "unit_price")) for item in line_items),
        Decimal("0")
    )
    subtotal = to_cents(subtotal)
    discount = to_cents(subtotal * discount_percent / HUNDRED)
    return QuoteTotals(subtotal=subtotal, discount=discount, total=subtotal - discount)
