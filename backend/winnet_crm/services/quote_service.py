"""
Serviço de gestão de orçamentos
"""
from typing import List, Optional
from datetime import datetime
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc
from loguru import logger

from winnet_crm.core.middleware import (
    AppException, BusinessException, NotFoundException, InvalidTransitionException
)
from winnet_crm.core.redis_client import get_redis
from winnet_crm.models.client import Client
from winnet_crm.models.quote import Quote, QuoteLineItem
from winnet_crm.schemas.quote import (
    QuoteStatus, QuoteCreateRequest, QuoteUpdateRequest, QuoteLineItemRequest,
    QuoteDetailResponse, QuoteLineItemResponse, QuoteListResponse,
    PaginatedQuoteListResponse
)
from winnet_crm.services.quote_totals import compute_totals, line_total, to_decimal


class QuoteService:
    """Serviço de gestão de orçamentos"""

    async def generate_quote_no(self, db: AsyncSession) -> str:
        """
        Gera número único de orçamento
        Formato: QT{AAAAMMDD}{sequência de 4 dígitos}
        """
        today = datetime.now().strftime("%Y%m%d")
        redis = await get_redis()

        max_retries = 3
        for attempt in range(max_retries):
            try:
                # Sequência diária no Redis
                key = f"quote_no:{today}"
                seq = await redis.incr(key)

                # Expira em 2 dias
                await redis.expire(key, 172800)

                quote_no = f"QT{today}{seq:04d}"

                # Confere unicidade
                check_query = select(Quote.quote_id).where(Quote.quote_no == quote_no)
                result = await db.execute(check_query)
                if result.scalar() is None:
                    return quote_no

                logger.warning(f"Número de orçamento {quote_no} já existe, tentando novamente...")
            except Exception as e:
                logger.error(f"Falha ao gerar número do orçamento (tentativa {attempt + 1}/{max_retries}): {e}")
                if attempt == max_retries - 1:
                    raise

        raise BusinessException("Falha ao gerar número do orçamento: limite de tentativas atingido")

    async def get_quote(self, db: AsyncSession, quote_id: UUID) -> Quote:
        """Carrega o orçamento (itens e cliente inclusos)"""
        result = await db.execute(select(Quote).where(Quote.quote_id == quote_id))
        quote = result.scalars().first()
        if not quote:
            raise NotFoundException("Orçamento", str(quote_id))
        return quote

    def _build_items(self, items_data: List[QuoteLineItemRequest]) -> List[QuoteLineItem]:
        return [
            QuoteLineItem(
                description=item.description,
                code=item.code,
                unit=item.unit,
                quantity=to_decimal(item.quantity),
                unit_price=to_decimal(item.unit_price),
                total=line_total(item.quantity, item.unit_price),
                sort_order=idx
            )
            for idx, item in enumerate(items_data, 1)
        ]

    def _apply_totals(self, quote: Quote) -> None:
        """Recalcula itens e totais do orçamento em memória"""
        for item in quote.items:
            item.total = line_total(item.quantity, item.unit_price)
        totals = compute_totals(quote.items, quote.discount_percent)
        quote.subtotal = totals.subtotal
        quote.discount_amount = totals.discount
        quote.total = totals.total

    def to_detail_response(self, quote: Quote) -> QuoteDetailResponse:
        return QuoteDetailResponse(
            quote_id=quote.quote_id,
            quote_no=quote.quote_no,
            client_id=quote.client_id,
            client_name=quote.client.name if quote.client else None,
            status=quote.status,
            subtotal=quote.subtotal,
            discount_percent=quote.discount_percent,
            discount_amount=quote.discount_amount,
            total=quote.total,
            due_date=quote.due_date,
            payment_method=quote.payment_method,
            notes=quote.notes,
            created_by=quote.created_by,
            version=quote.version,
            created_at=quote.created_at,
            updated_at=quote.updated_at,
            items=[QuoteLineItemResponse.model_validate(item) for item in quote.items]
        )

    async def create_quote(
        self,
        db: AsyncSession,
        data: QuoteCreateRequest
    ) -> QuoteDetailResponse:
        """Cria orçamento em rascunho"""
        try:
            client = await db.get(Client, data.client_id)
            if not client:
                raise NotFoundException("Cliente", str(data.client_id))

            quote_no = await self.generate_quote_no(db)

            quote = Quote(
                quote_no=quote_no,
                client_id=data.client_id,
                status=QuoteStatus.DRAFT,
                discount_percent=to_decimal(data.discount_percent),
                due_date=data.due_date,
                payment_method=data.payment_method,
                notes=data.notes,
                created_by=data.created_by,
                items=self._build_items(data.items)
            )
            quote.client = client
            self._apply_totals(quote)

            db.add(quote)
            await db.commit()

            logger.info(f"Orçamento criado: {quote.quote_no} | total {quote.total}")
            return self.to_detail_response(quote)
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao criar orçamento: {e}")
            raise

    async def get_quote_detail(
        self,
        db: AsyncSession,
        quote_id: UUID
    ) -> QuoteDetailResponse:
        """Detalhe completo do orçamento"""
        quote = await self.get_quote(db, quote_id)
        return self.to_detail_response(quote)

    async def update_quote(
        self,
        db: AsyncSession,
        quote_id: UUID,
        data: QuoteUpdateRequest
    ) -> QuoteDetailResponse:
        """Atualiza orçamento em rascunho e recalcula os totais"""
        try:
            quote = await self.get_quote(db, quote_id)

            if quote.status != QuoteStatus.DRAFT:
                raise BusinessException(
                    "Somente orçamentos em rascunho podem ser alterados",
                    error_code="QUOTE_NOT_EDITABLE",
                    details={"status": quote.status}
                )

            update_data = data.model_dump(exclude_unset=True, exclude={"items"})
            if update_data.get("discount_percent") is None:
                update_data.pop("discount_percent", None)
            for key, value in update_data.items():
                setattr(quote, key, value)

            if data.items is not None:
                quote.items = self._build_items(data.items)

            self._apply_totals(quote)
            await db.commit()

            return self.to_detail_response(quote)
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao atualizar orçamento: {e}")
            raise

    async def recalculate_totals(self, db: AsyncSession, quote_id: UUID) -> QuoteDetailResponse:
        """Recalcula totais a partir dos itens gravados"""
        try:
            quote = await self.get_quote(db, quote_id)
            self._apply_totals(quote)
            await db.commit()
            return self.to_detail_response(quote)
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao recalcular orçamento: {e}")
            raise

    async def send_quote(self, db: AsyncSession, quote_id: UUID) -> QuoteDetailResponse:
        """Rascunho -> enviado"""
        try:
            quote = await self.get_quote(db, quote_id)
            if quote.status == QuoteStatus.SENT:
                return self.to_detail_response(quote)
            if quote.status != QuoteStatus.DRAFT:
                raise InvalidTransitionException("Orçamento", quote.status, QuoteStatus.SENT)

            quote.status = QuoteStatus.SENT
            await db.commit()

            logger.info(f"Orçamento enviado: {quote.quote_no}")
            return self.to_detail_response(quote)
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao enviar orçamento: {e}")
            raise

    async def reopen_quote(self, db: AsyncSession, quote_id: UUID) -> QuoteDetailResponse:
        """Enviado -> rascunho"""
        try:
            quote = await self.get_quote(db, quote_id)
            if quote.status == QuoteStatus.DRAFT:
                return self.to_detail_response(quote)
            if quote.status != QuoteStatus.SENT:
                raise InvalidTransitionException("Orçamento", quote.status, QuoteStatus.DRAFT)

            quote.status = QuoteStatus.DRAFT
            await db.commit()

            logger.info(f"Orçamento reaberto: {quote.quote_no}")
            return self.to_detail_response(quote)
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao reabrir orçamento: {e}")
            raise

    async def delete_quote(self, db: AsyncSession, quote_id: UUID) -> bool:
        """Exclui orçamento em rascunho ou rejeitado"""
        try:
            quote = await self.get_quote(db, quote_id)
            if quote.status not in (QuoteStatus.DRAFT, QuoteStatus.REJECTED):
                raise BusinessException(
                    "Somente orçamentos em rascunho ou rejeitados podem ser excluídos",
                    error_code="QUOTE_NOT_DELETABLE",
                    details={"status": quote.status}
                )

            await db.delete(quote)
            await db.commit()
            return True
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao excluir orçamento: {e}")
            raise

    async def list_quotes(
        self,
        db: AsyncSession,
        client_id: Optional[UUID] = None,
        status: Optional[str] = None,
        created_by: Optional[UUID] = None,
        page: int = 1,
        page_size: int = 20
    ) -> PaginatedQuoteListResponse:
        """Listagem paginada"""
        try:
            query = select(Quote)

            if client_id:
                query = query.where(Quote.client_id == client_id)

            if status:
                query = query.where(Quote.status == status)

            if created_by:
                query = query.where(Quote.created_by == created_by)

            count_query = select(func.count()).select_from(query.subquery())
            total_result = await db.execute(count_query)
            total = total_result.scalar() or 0

            offset = (page - 1) * page_size
            query = query.order_by(desc(Quote.created_at)).offset(offset).limit(page_size)

            result = await db.execute(query)
            quotes = result.scalars().all()

            return PaginatedQuoteListResponse(
                total=total,
                page=page,
                page_size=page_size,
                data=[QuoteListResponse.model_validate(q) for q in quotes]
            )
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Falha ao listar orçamentos: {e}")
            raise


quote_service = QuoteService()
