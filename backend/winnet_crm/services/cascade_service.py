"""
Motor de cascata comercial

Aprovação de orçamento -> venda -> lançamento financeiro, confirmação de
venda e de pagamento, despesas manuais e conciliação de cascatas
incompletas.

Cada cascata roda em uma única transação: ou orçamento, venda e lançamento
são gravados juntos, ou nada é gravado. A unicidade de sales.quote_id é a
chave de idempotência; a coluna de versão do orçamento barra aprovações
concorrentes.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from loguru import logger
from sqlalchemy import select, func, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from winnet_crm.core.events import (
    DomainEvent, PaymentConfirmed, QuoteApproved, QuoteRejected, SaleCreated, event_bus
)
from winnet_crm.core.middleware import (
    AppException, CascadeFailure, ConflictException, InvalidTransitionException, NotFoundException
)
from winnet_crm.models.financial import FinancialEntry
from winnet_crm.models.quote import Quote
from winnet_crm.models.sale import Payment, Sale
from winnet_crm.schemas.financial import EntryStatus, EntryType, SALES_CATEGORY
from winnet_crm.schemas.quote import QuoteStatus
from winnet_crm.schemas.sale import (
    PaginatedSaleListResponse, PaymentStatus, SaleResponse, SaleStatus, UNSPECIFIED_PAYMENT_METHOD
)
from winnet_crm.services.quote_service import quote_service
from winnet_crm.services.quote_totals import to_cents


@dataclass
class ApprovalResult:
    quote: Quote
    sale: Sale
    entry: Optional[FinancialEntry]
    created: bool


@dataclass
class PaymentResult:
    sale: Sale
    payments: List[Payment]
    entries: List[FinancialEntry]


def split_installments(total: Decimal, installments: int) -> List[Decimal]:
    """Divide o total em parcelas; a última absorve a diferença de centavos"""
    total = to_cents(total)
    base = to_cents(total / installments)
    amounts = [base] * (installments - 1)
    amounts.append(total - base * (installments - 1))
    return amounts


class CascadeService:
    """Motor de cascata orçamento -> venda -> financeiro"""

    # ==================== Consultas ====================

    async def get_sale(self, db: AsyncSession, sale_id: UUID) -> Sale:
        sale = await db.get(Sale, sale_id)
        if not sale:
            raise NotFoundException("Venda", str(sale_id))
        return sale

    async def find_sale_for_quote(self, db: AsyncSession, quote_id: UUID) -> Optional[Sale]:
        result = await db.execute(select(Sale).where(Sale.quote_id == quote_id))
        return result.scalars().first()

    async def find_inflow_entry(self, db: AsyncSession, sale_id: UUID) -> Optional[FinancialEntry]:
        result = await db.execute(
            select(FinancialEntry)
            .where(FinancialEntry.sale_id == sale_id, FinancialEntry.type == EntryType.INFLOW)
            .order_by(FinancialEntry.created_at)
        )
        return result.scalars().first()

    async def list_sales(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> PaginatedSaleListResponse:
        query = select(Sale)
        if status:
            query = query.where(Sale.status == status)

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        offset = (page - 1) * page_size
        result = await db.execute(
            query.order_by(desc(Sale.sale_date), desc(Sale.created_at)).offset(offset).limit(page_size)
        )
        return PaginatedSaleListResponse(
            total=total,
            page=page,
            page_size=page_size,
            data=[SaleResponse.model_validate(s) for s in result.scalars().all()]
        )

    # ==================== Cascata ====================

    def _build_sale(
        self,
        quote: Quote,
        user_id: Optional[UUID],
        sale_date: date,
        payment_method: Optional[str] = None
    ) -> Sale:
        return Sale(
            quote_id=quote.quote_id,
            sale_date=sale_date,
            # Valor copiado no momento da venda
            total=quote.total,
            payment_method=payment_method or quote.payment_method or UNSPECIFIED_PAYMENT_METHOD,
            status=SaleStatus.PENDING,
            created_by=user_id or quote.created_by
        )

    def _build_inflow_entry(self, sale: Sale, quote: Quote) -> FinancialEntry:
        return FinancialEntry(
            sale_id=sale.sale_id,
            type=EntryType.INFLOW,
            amount=sale.total,
            description=f"Venda {sale.reference} - orçamento {quote.quote_no}",
            category=SALES_CATEGORY,
            status=EntryStatus.PENDING,
            entry_date=sale.sale_date,
            created_by=sale.created_by
        )

    async def _insert_cascade_records(
        self,
        db: AsyncSession,
        quote: Quote,
        user_id: Optional[UUID],
        sale_date: date,
        payment_method: Optional[str] = None
    ):
        """Grava venda e lançamento de entrada na transação corrente"""
        sale = self._build_sale(quote, user_id, sale_date, payment_method)
        db.add(sale)
        await db.flush()

        entry = self._build_inflow_entry(sale, quote)
        db.add(entry)
        await db.flush()
        return sale, entry

    async def publish_event(self, domain_event: DomainEvent) -> None:
        # Notificações são best-effort: a cascata já foi gravada
        try:
            await event_bus.publish(domain_event)
        except Exception as e:
            logger.warning(f"Falha ao processar evento {type(domain_event).__name__}: {e}")

    async def _resolve_concurrent_approval(self, db: AsyncSession, quote_id: UUID) -> Optional[ApprovalResult]:
        """Outra sessão concluiu a cascata primeiro: devolve o resultado dela"""
        sale = await self.find_sale_for_quote(db, quote_id)
        if sale is None:
            return None
        quote = await quote_service.get_quote(db, quote_id)
        entry = await self.find_inflow_entry(db, sale.sale_id)
        logger.info(f"Aprovação concorrente do orçamento {quote.quote_no}: usando venda {sale.reference}")
        return ApprovalResult(quote=quote, sale=sale, entry=entry, created=False)

    async def approve(
        self,
        db: AsyncSession,
        quote_id: UUID,
        user_id: Optional[UUID] = None,
        today: Optional[date] = None
    ) -> ApprovalResult:
        """
        Aprova o orçamento e gera venda + lançamento de entrada

        Idempotente: se já existe venda para o orçamento, nada é gravado e a
        venda existente é devolvida com created=False.
        """
        quote = await quote_service.get_quote(db, quote_id)

        existing = await self.find_sale_for_quote(db, quote_id)
        if existing:
            logger.info(f"Orçamento {quote.quote_no} já aprovado (venda {existing.reference}); nada a fazer")
            entry = await self.find_inflow_entry(db, existing.sale_id)
            return ApprovalResult(quote=quote, sale=existing, entry=entry, created=False)

        if quote.status == QuoteStatus.REJECTED:
            raise InvalidTransitionException("Orçamento", quote.status, QuoteStatus.APPROVED)

        step = "quote_status"
        try:
            quote.status = QuoteStatus.APPROVED
            await db.flush()

            step = "sale_and_entry"
            sale, entry = await self._insert_cascade_records(db, quote, user_id, today or date.today())

            step = "commit"
            await db.commit()
        except (IntegrityError, StaleDataError) as e:
            await db.rollback()
            resolved = await self._resolve_concurrent_approval(db, quote_id)
            if resolved is None:
                logger.error(f"Cascata do orçamento {quote_id} falhou na etapa {step}: {e}")
                raise CascadeFailure(str(quote_id), step, str(e)) from e
            return resolved
        except AppException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Cascata do orçamento {quote_id} falhou na etapa {step}: {e}")
            raise CascadeFailure(str(quote_id), step, str(e)) from e

        logger.info(
            f"Orçamento aprovado: {quote.quote_no} -> venda {sale.reference} "
            f"({sale.total}) + lançamento de entrada pendente"
        )

        await self.publish_event(QuoteApproved(
            quote_id=quote.quote_id,
            quote_no=quote.quote_no,
            sale_id=sale.sale_id,
            sale_ref=sale.reference,
            total=sale.total,
            user_id=quote.created_by or user_id,
            client_name=quote.client.name if quote.client else None
        ))
        return ApprovalResult(quote=quote, sale=sale, entry=entry, created=True)

    async def reject(
        self,
        db: AsyncSession,
        quote_id: UUID,
        user_id: Optional[UUID] = None
    ) -> Quote:
        """Rejeita o orçamento; sem cascata"""
        try:
            quote = await quote_service.get_quote(db, quote_id)
            if quote.status == QuoteStatus.REJECTED:
                return quote
            if quote.status == QuoteStatus.APPROVED:
                raise InvalidTransitionException("Orçamento", quote.status, QuoteStatus.REJECTED)

            quote.status = QuoteStatus.REJECTED
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao rejeitar orçamento: {e}")
            raise

        logger.info(f"Orçamento rejeitado: {quote.quote_no}")
        await self.publish_event(QuoteRejected(
            quote_id=quote.quote_id,
            quote_no=quote.quote_no,
            user_id=quote.created_by or user_id,
            client_name=quote.client.name if quote.client else None
        ))
        return quote

    async def create_sale(
        self,
        db: AsyncSession,
        quote_id: UUID,
        payment_method: str,
        sale_date: Optional[date] = None,
        installments: int = 1,
        user_id: Optional[UUID] = None
    ) -> ApprovalResult:
        """Venda manual para orçamento já aprovado, com plano de parcelas"""
        quote = await quote_service.get_quote(db, quote_id)

        if quote.status != QuoteStatus.APPROVED:
            raise InvalidTransitionException("Orçamento", quote.status, "sale")

        existing = await self.find_sale_for_quote(db, quote_id)
        if existing:
            raise ConflictException(
                f"Orçamento {quote.quote_no} já possui venda {existing.reference}",
                details={"sale_id": str(existing.sale_id)}
            )

        step = "sale_and_entry"
        try:
            sale, entry = await self._insert_cascade_records(
                db, quote, user_id, sale_date or date.today(), payment_method
            )

            step = "installments"
            for num, amount in enumerate(split_installments(sale.total, installments), 1):
                db.add(Payment(
                    sale_id=sale.sale_id,
                    amount_paid=amount,
                    method=sale.payment_method,
                    installment_num=num,
                    installment_total=installments,
                    status=PaymentStatus.PENDING
                ))

            step = "commit"
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException(f"Orçamento {quote_id} já possui venda") from e
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao criar venda do orçamento {quote_id} (etapa {step}): {e}")
            raise CascadeFailure(str(quote_id), step, str(e)) from e

        logger.info(f"Venda manual criada: {sale.reference} ({installments} parcela(s))")
        await self.publish_event(SaleCreated(sale_id=sale.sale_id, total=sale.total, user_id=sale.created_by))
        return ApprovalResult(quote=quote, sale=sale, entry=entry, created=True)

    # ==================== Venda e pagamento ====================

    async def confirm_sale(self, db: AsyncSession, sale_id: UUID) -> Sale:
        """Confirma a venda; lançamentos continuam pendentes até o pagamento"""
        try:
            sale = await self.get_sale(db, sale_id)
            if sale.status == SaleStatus.CONFIRMED:
                return sale
            if sale.status == SaleStatus.CANCELLED:
                raise InvalidTransitionException("Venda", sale.status, SaleStatus.CONFIRMED)

            sale.status = SaleStatus.CONFIRMED
            await db.commit()

            logger.info(f"Venda confirmada: {sale.reference}")
            return sale
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao confirmar venda: {e}")
            raise

    async def cancel_sale(self, db: AsyncSession, sale_id: UUID) -> Sale:
        """Cancela a venda e seus lançamentos pendentes"""
        try:
            sale = await self.get_sale(db, sale_id)
            if sale.status == SaleStatus.CANCELLED:
                return sale

            sale.status = SaleStatus.CANCELLED

            result = await db.execute(
                select(FinancialEntry).where(
                    FinancialEntry.sale_id == sale_id,
                    FinancialEntry.status == EntryStatus.PENDING
                )
            )
            for entry in result.scalars().all():
                entry.status = EntryStatus.CANCELLED

            await db.commit()

            logger.info(f"Venda cancelada: {sale.reference}")
            return sale
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao cancelar venda: {e}")
            raise

    async def confirm_payment(
        self,
        db: AsyncSession,
        sale_id: UUID,
        amount: Decimal,
        user_id: Optional[UUID] = None,
        today: Optional[date] = None
    ) -> PaymentResult:
        """
        Confirma recebimento

        Parcelas pendentes são confirmadas em ordem enquanto o valor cobrir
        (pelo menos a primeira). Sem parcelas, grava um pagamento único já
        confirmado. Quando não resta parcela pendente, os lançamentos
        pendentes da venda passam a confirmados. Tudo em uma transação.
        """
        amount = to_cents(amount)
        today = today or date.today()
        try:
            sale = await self.get_sale(db, sale_id)
            if sale.status == SaleStatus.CANCELLED:
                raise InvalidTransitionException("Venda", sale.status, "payment")

            result = await db.execute(
                select(Payment)
                .where(Payment.sale_id == sale_id, Payment.status == PaymentStatus.PENDING)
                .order_by(Payment.installment_num)
            )
            pending = list(result.scalars().all())

            confirmed: List[Payment] = []
            if not pending:
                payment = Payment(
                    sale_id=sale_id,
                    amount_paid=amount,
                    payment_date=today,
                    method=sale.payment_method,
                    installment_num=1,
                    installment_total=1,
                    status=PaymentStatus.CONFIRMED
                )
                db.add(payment)
                confirmed.append(payment)
            else:
                remaining = amount
                for payment in pending:
                    if confirmed and remaining < payment.amount_paid:
                        break
                    payment.status = PaymentStatus.CONFIRMED
                    payment.payment_date = today
                    remaining -= payment.amount_paid
                    confirmed.append(payment)

            entries: List[FinancialEntry] = []
            if len(confirmed) >= len(pending):
                result = await db.execute(
                    select(FinancialEntry).where(
                        FinancialEntry.sale_id == sale_id,
                        FinancialEntry.status == EntryStatus.PENDING
                    )
                )
                entries = list(result.scalars().all())
                for entry in entries:
                    entry.status = EntryStatus.CONFIRMED

            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao confirmar pagamento da venda {sale_id}: {e}")
            raise

        logger.info(
            f"Pagamento confirmado: venda {sale.reference} | R$ {amount} | "
            f"{len(confirmed)} parcela(s), {len(entries)} lançamento(s)"
        )
        await self.publish_event(PaymentConfirmed(sale_id=sale.sale_id, amount=amount, user_id=user_id or sale.created_by))
        return PaymentResult(sale=sale, payments=confirmed, entries=entries)

    async def record_outflow(
        self,
        db: AsyncSession,
        amount: Decimal,
        description: str,
        category: str,
        user_id: Optional[UUID] = None,
        today: Optional[date] = None
    ) -> FinancialEntry:
        """Despesa manual, já confirmada"""
        try:
            entry = FinancialEntry(
                sale_id=None,
                type=EntryType.OUTFLOW,
                amount=to_cents(amount),
                description=description,
                category=category,
                status=EntryStatus.CONFIRMED,
                entry_date=today or date.today(),
                created_by=user_id
            )
            db.add(entry)
            await db.commit()

            logger.info(f"Saída registrada: {category} | R$ {entry.amount}")
            return entry
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao registrar saída: {e}")
            raise

    # ==================== Conciliação ====================

    async def find_incomplete_cascades(self, db: AsyncSession) -> List[UUID]:
        """Orçamentos aprovados sem venda"""
        result = await db.execute(
            select(Quote.quote_id)
            .outerjoin(Sale, Sale.quote_id == Quote.quote_id)
            .where(Quote.status == QuoteStatus.APPROVED, Sale.sale_id.is_(None))
            .order_by(Quote.updated_at)
        )
        return list(result.scalars().all())

    async def reconcile_cascades(
        self,
        db: AsyncSession,
        today: Optional[date] = None
    ) -> Tuple[List[UUID], List[UUID]]:
        """Completa a cascata de orçamentos aprovados que ficaram sem venda

        Devolve (corrigidos, com falha).
        """
        repaired: List[UUID] = []
        failed: List[UUID] = []

        for quote_id in await self.find_incomplete_cascades(db):
            try:
                quote = await quote_service.get_quote(db, quote_id)
                sale, _ = await self._insert_cascade_records(db, quote, None, today or date.today())
                await db.commit()
            except IntegrityError:
                # Venda criada por outra sessão no meio tempo
                await db.rollback()
                continue
            except Exception as e:
                await db.rollback()
                logger.error(f"Conciliação do orçamento {quote_id} falhou: {e}")
                failed.append(quote_id)
                continue

            logger.warning(f"Cascata incompleta corrigida: orçamento {quote.quote_no} -> venda {sale.reference}")
            repaired.append(quote_id)
            await self.publish_event(QuoteApproved(
                quote_id=quote.quote_id,
                quote_no=quote.quote_no,
                sale_id=sale.sale_id,
                sale_ref=sale.reference,
                total=sale.total,
                user_id=quote.created_by,
                client_name=quote.client.name if quote.client else None
            ))

        return repaired, failed


cascade_service = CascadeService()
