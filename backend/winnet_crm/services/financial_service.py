"""
Visões do financeiro (read model)

Fluxo de caixa mensal, indicadores, pendências, alertas e relatório mensal,
todos calculados sobre os lançamentos gravados pelo motor de cascata.
"""
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import select, func, desc, or_
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.core.config import settings
from winnet_crm.core.middleware import ValidationException
from winnet_crm.core.timeutils import add_months, month_key, utcnow
from winnet_crm.models.client import Client
from winnet_crm.models.financial import FinancialEntry
from winnet_crm.models.quote import Quote
from winnet_crm.models.sale import Payment, Sale
from winnet_crm.schemas.financial import (
    CashFlowAlerts, EntryStatus, EntryType, FinancialEntryResponse, FinancialKpis,
    MonthlyCashFlow, MonthlyReport, PendingFinancialItem, ProjectionStatus
)
from winnet_crm.schemas.sale import PaymentStatus, SaleStatus
from winnet_crm.services.cash_flow_service import project_cash_flow
from winnet_crm.services.notification_service import format_money

ZERO = Decimal("0")


def parse_month(value: str) -> date:
    """'AAAA-MM' -> primeiro dia do mês"""
    try:
        year, month = value.split("-")
        return date(int(year), int(month), 1)
    except ValueError as e:
        raise ValidationException(f"Mês inválido: {value}", details={"month": value}) from e


class FinancialService:
    """Consultas agregadas do financeiro"""

    async def _sum_entries(self, db: AsyncSession, *conditions) -> Decimal:
        result = await db.execute(select(func.coalesce(func.sum(FinancialEntry.amount), 0)).where(*conditions))
        return Decimal(result.scalar() or 0)

    async def list_entries(
        self,
        db: AsyncSession,
        entry_type: Optional[str] = None,
        status: Optional[str] = None,
        sale_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 100
    ) -> List[FinancialEntryResponse]:
        query = select(FinancialEntry)
        if entry_type:
            query = query.where(FinancialEntry.type == entry_type)
        if status:
            query = query.where(FinancialEntry.status == status)
        if sale_id:
            query = query.where(FinancialEntry.sale_id == sale_id)
        if start_date:
            query = query.where(FinancialEntry.entry_date >= start_date)
        if end_date:
            query = query.where(FinancialEntry.entry_date <= end_date)

        query = query.order_by(desc(FinancialEntry.entry_date), desc(FinancialEntry.created_at)).limit(limit)
        result = await db.execute(query)
        return [FinancialEntryResponse.model_validate(e) for e in result.scalars().all()]

    async def cash_flow_by_month(
        self,
        db: AsyncSession,
        months: int = 12,
        today: Optional[date] = None
    ) -> List[MonthlyCashFlow]:
        """
        Fluxo realizado por mês, do mais recente para o mais antigo

        Só lançamentos confirmados; meses sem movimento não aparecem.
        """
        today = today or date.today()
        start = add_months(today, -(months - 1))

        result = await db.execute(
            select(FinancialEntry.entry_date, FinancialEntry.type, FinancialEntry.amount)
            .where(
                FinancialEntry.status == EntryStatus.CONFIRMED,
                FinancialEntry.entry_date >= start,
                FinancialEntry.entry_date < add_months(today, 1)
            )
            .order_by(desc(FinancialEntry.entry_date))
        )

        totals: "OrderedDict[str, dict]" = OrderedDict()
        for entry_date, entry_type, amount in result.all():
            row = totals.setdefault(month_key(entry_date), {"inflow": ZERO, "outflow": ZERO})
            if entry_type == EntryType.INFLOW:
                row["inflow"] += Decimal(amount)
            else:
                row["outflow"] += Decimal(amount)

        return [
            MonthlyCashFlow(
                month=month,
                inflow_total=row["inflow"],
                outflow_total=row["outflow"],
                balance=row["inflow"] - row["outflow"]
            )
            for month, row in totals.items()
        ]

    async def cash_flow_projection(self, db: AsyncSession, today: Optional[date] = None):
        today = today or date.today()
        history = await self.cash_flow_by_month(db, months=12, today=today)
        return project_cash_flow(history, today)

    async def financial_kpis(self, db: AsyncSession, today: Optional[date] = None) -> FinancialKpis:
        today = today or date.today()
        month_start = add_months(today, 0)
        next_month = add_months(today, 1)

        confirmed = FinancialEntry.status == EntryStatus.CONFIRMED
        inflow = FinancialEntry.type == EntryType.INFLOW
        outflow = FinancialEntry.type == EntryType.OUTFLOW
        this_month = (FinancialEntry.entry_date >= month_start, FinancialEntry.entry_date < next_month)

        pending_sales = await db.execute(
            select(func.coalesce(func.sum(Sale.total), 0)).where(Sale.status == SaleStatus.PENDING)
        )
        pending_payments = await db.execute(
            select(func.count(Payment.payment_id)).where(Payment.status == PaymentStatus.PENDING)
        )

        return FinancialKpis(
            inflows_this_month=await self._sum_entries(db, confirmed, inflow, *this_month),
            outflows_this_month=await self._sum_entries(db, confirmed, outflow, *this_month),
            pending_sales_total=Decimal(pending_sales.scalar() or 0),
            pending_payments_count=pending_payments.scalar() or 0,
            inflows_total=await self._sum_entries(db, confirmed, inflow),
            outflows_total=await self._sum_entries(db, confirmed, outflow)
        )

    async def pending_financials(self, db: AsyncSession, limit: int = 50) -> List[PendingFinancialItem]:
        """Vendas pendentes ou com pagamento/lançamento pendente"""
        pending_payment = select(Payment.sale_id).where(Payment.status == PaymentStatus.PENDING)
        pending_entry = select(FinancialEntry.sale_id).where(
            FinancialEntry.status == EntryStatus.PENDING,
            FinancialEntry.sale_id.is_not(None)
        )

        result = await db.execute(
            select(Sale, Quote.quote_no, Client.name)
            .select_from(Sale)
            .join(Quote, Quote.quote_id == Sale.quote_id)
            .outerjoin(Client, Client.client_id == Quote.client_id)
            .where(
                Sale.status != SaleStatus.CANCELLED,
                or_(
                    Sale.status == SaleStatus.PENDING,
                    Sale.sale_id.in_(pending_payment),
                    Sale.sale_id.in_(pending_entry)
                )
            )
            .order_by(desc(Sale.sale_date), desc(Sale.created_at))
            .limit(limit)
        )
        rows = result.all()
        if not rows:
            return []

        sale_ids = [sale.sale_id for sale, _, _ in rows]

        payments = {}
        payment_result = await db.execute(
            select(Payment).where(Payment.sale_id.in_(sale_ids)).order_by(Payment.installment_num)
        )
        for payment in payment_result.scalars().all():
            # Primeira parcela ainda pendente; senão a última confirmada
            current = payments.get(payment.sale_id)
            if current is None or current.status != PaymentStatus.PENDING:
                payments[payment.sale_id] = payment

        entries = {}
        entry_result = await db.execute(
            select(FinancialEntry).where(
                FinancialEntry.sale_id.in_(sale_ids),
                FinancialEntry.type == EntryType.INFLOW
            )
        )
        for entry in entry_result.scalars().all():
            entries.setdefault(entry.sale_id, entry)

        items = []
        for sale, quote_no, client_name in rows:
            payment = payments.get(sale.sale_id)
            entry = entries.get(sale.sale_id)
            items.append(PendingFinancialItem(
                sale_id=sale.sale_id,
                quote_no=quote_no,
                client_name=client_name,
                sale_date=sale.sale_date,
                total=sale.total,
                payment_method=sale.payment_method,
                sale_status=sale.status,
                payment_status=payment.status if payment else None,
                payment_date=payment.payment_date if payment else None,
                entry_status=entry.status if entry else None
            ))
        return items

    async def cash_flow_alerts(self, db: AsyncSession, today: Optional[date] = None) -> CashFlowAlerts:
        today = today or date.today()
        kpis = await self.financial_kpis(db, today)
        alerts = []

        balance = kpis.inflows_total - kpis.outflows_total
        if balance < settings.LOW_BALANCE_THRESHOLD:
            alerts.append(f"Saldo baixo: Menos de R$ {format_money(settings.LOW_BALANCE_THRESHOLD)} em caixa")

        if kpis.pending_payments_count > settings.PENDING_PAYMENTS_ALERT:
            alerts.append(f"{kpis.pending_payments_count} pagamentos pendentes")

        if kpis.pending_sales_total > settings.PENDING_SALES_ALERT:
            alerts.append("Alto valor em vendas pendentes de confirmação")

        projections = await self.cash_flow_projection(db, today)
        critical = [p for p in projections if p.status == ProjectionStatus.CRITICAL]
        if critical:
            alerts.append(f"{len(critical)} meses com projeção crítica")

        if alerts:
            logger.info(f"Alertas de fluxo de caixa: {len(alerts)}")
        return CashFlowAlerts(alerts=alerts, generated_at=utcnow())

    async def monthly_report(self, db: AsyncSession, month: str) -> MonthlyReport:
        """Totais do mês; lançamentos cancelados ficam de fora"""
        start = parse_month(month)
        end = add_months(start, 1)

        result = await db.execute(
            select(FinancialEntry.type, FinancialEntry.amount, Client.client_id)
            .select_from(FinancialEntry)
            .outerjoin(Sale, Sale.sale_id == FinancialEntry.sale_id)
            .outerjoin(Quote, Quote.quote_id == Sale.quote_id)
            .outerjoin(Client, Client.client_id == Quote.client_id)
            .where(
                FinancialEntry.entry_date >= start,
                FinancialEntry.entry_date < end,
                FinancialEntry.status != EntryStatus.CANCELLED
            )
        )
        rows = result.all()

        inflow = sum((Decimal(amount) for entry_type, amount, _ in rows if entry_type == EntryType.INFLOW), ZERO)
        outflow = sum((Decimal(amount) for entry_type, amount, _ in rows if entry_type == EntryType.OUTFLOW), ZERO)
        clients = {client_id for _, _, client_id in rows if client_id is not None}

        return MonthlyReport(
            period=month_key(start),
            inflow_total=inflow,
            outflow_total=outflow,
            transactions=len(rows),
            active_clients=len(clients)
        )


financial_service = FinancialService()
