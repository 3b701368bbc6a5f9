"""
Projeção de fluxo de caixa

Média dos últimos 6 meses com ajuste sazonal nas entradas e 5% de
inflação nas saídas. Funções puras: sem acesso a banco.
"""
import math
from datetime import date
from decimal import Decimal
from typing import Any, List, Sequence

from winnet_crm.core.timeutils import add_months, month_key
from winnet_crm.schemas.financial import CashFlowProjection, ProjectionStatus
from winnet_crm.services.quote_totals import to_cents, to_decimal

HISTORY_WINDOW = 6
PROJECTION_MONTHS = 12
OUTFLOW_INFLATION = Decimal("1.05")
SEASONALITY_AMPLITUDE = 0.1
CRITICAL_BALANCE = Decimal("-10000")


def _value(row: Any, name: str) -> Decimal:
    if isinstance(row, dict):
        return to_decimal(row.get(name) or 0)
    return to_decimal(getattr(row, name) or 0)


def seasonality_factor(month_index: int) -> Decimal:
    """Fator sazonal para o mês (0 = janeiro)"""
    factor = 1 + math.sin((month_index + 1) * math.pi / 6) * SEASONALITY_AMPLITUDE
    return Decimal(str(factor))


def classify_balance(balance: Decimal) -> str:
    if balance < CRITICAL_BALANCE:
        return ProjectionStatus.CRITICAL
    if balance < 0:
        return ProjectionStatus.NEGATIVE
    return ProjectionStatus.POSITIVE


def project_cash_flow(history: Sequence[Any], reference_date: date) -> List[CashFlowProjection]:
    """
    Projeta os próximos 12 meses

    `history` vem do mais recente para o mais antigo, com inflow_total e
    outflow_total por mês (dicts ou objetos). Histórico vazio projeta zeros.
    """
    window = list(history)[:HISTORY_WINDOW]
    if window:
        avg_inflow = sum((_value(row, "inflow_total") for row in window), Decimal("0")) / len(window)
        avg_outflow = sum((_value(row, "outflow_total") for row in window), Decimal("0")) / len(window)
    else:
        avg_inflow = avg_outflow = Decimal("0")

    projections = []
    for i in range(1, PROJECTION_MONTHS + 1):
        month = add_months(reference_date, i)
        inflow = to_cents(avg_inflow * seasonality_factor(month.month - 1))
        outflow = to_cents(avg_outflow * OUTFLOW_INFLATION)
        balance = inflow - outflow
        projections.append(CashFlowProjection(
            month=month_key(month),
            projected_inflow=inflow,
            projected_outflow=outflow,
            projected_balance=balance,
            status=classify_balance(balance)
        ))

    return projections
