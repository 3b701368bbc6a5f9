"""
Serviço de notificações

O despachante assina o barramento de eventos de domínio e grava uma
notificação por evento, em sessão própria. Falhas são registradas em log e
nunca chegam a quem publicou o evento.
"""
from typing import List, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.core import database
from winnet_crm.core.events import (
    DomainEvent, FollowUpScheduled, PaymentConfirmed, QuoteApproved, QuoteRejected, SaleCreated, event_bus
)
from winnet_crm.core.middleware import NotFoundException, NotificationFailure
from winnet_crm.models.notification import Notification
from winnet_crm.schemas.notification import NotificationResponse


def format_money(value) -> str:
    """R$ no formato brasileiro: 1.234,56"""
    text = f"{value:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def build_message(domain_event: DomainEvent) -> Optional[str]:
    """Texto da notificação para o evento; None quando não há mensagem"""
    if isinstance(domain_event, QuoteApproved):
        return f"Orçamento aprovado, venda {domain_event.sale_ref} criada automaticamente"
    if isinstance(domain_event, QuoteRejected):
        return f"Orçamento rejeitado! Cliente: {domain_event.client_name or '-'}"
    if isinstance(domain_event, PaymentConfirmed):
        return f"Pagamento confirmado: R$ {format_money(domain_event.amount)}"
    if isinstance(domain_event, SaleCreated):
        return f"Nova venda pendente: R$ {format_money(domain_event.total)}"
    if isinstance(domain_event, FollowUpScheduled):
        return f"Follow-up agendado para {domain_event.follow_up_date.strftime('%d/%m/%Y')}: {domain_event.note}"
    return None


class NotificationDispatcher:
    """Converte eventos de domínio em notificações gravadas"""

    HANDLED_EVENTS = (QuoteApproved, QuoteRejected, PaymentConfirmed, SaleCreated, FollowUpScheduled)

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    @property
    def session_factory(self):
        return self._session_factory or database.async_session_maker

    @session_factory.setter
    def session_factory(self, factory) -> None:
        self._session_factory = factory

    async def _insert(self, user_id: UUID, message: str) -> Notification:
        async with self.session_factory() as session:
            try:
                notification = Notification(user_id=user_id, message=message, read=False)
                session.add(notification)
                await session.commit()
                return notification
            except Exception as e:
                await session.rollback()
                raise NotificationFailure(str(e), details={"user_id": str(user_id)}) from e

    async def notify(self, domain_event: DomainEvent) -> Optional[Notification]:
        message = build_message(domain_event)
        user_id = getattr(domain_event, "user_id", None)
        if message is None or user_id is None:
            logger.debug(f"Evento {type(domain_event).__name__} sem destinatário; notificação ignorada")
            return None

        try:
            notification = await self._insert(user_id, message)
        except NotificationFailure as e:
            logger.error(f"{e.message} | {e.details}")
            return None

        logger.info(f"Notificação enviada para {user_id}: {message}")
        return notification

    def register(self) -> None:
        for event_type in self.HANDLED_EVENTS:
            event_bus.subscribe(event_type, self.notify)

    def unregister(self) -> None:
        for event_type in self.HANDLED_EVENTS:
            event_bus.unsubscribe(event_type, self.notify)


notification_dispatcher = NotificationDispatcher()


def register_notification_handlers() -> None:
    notification_dispatcher.register()


class NotificationService:
    """Consulta e leitura de notificações"""

    async def list_notifications(
        self,
        db: AsyncSession,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[NotificationResponse]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        query = query.order_by(desc(Notification.created_at)).limit(limit)

        result = await db.execute(query)
        return [NotificationResponse.model_validate(n) for n in result.scalars().all()]

    async def mark_read(self, db: AsyncSession, notification_id: UUID) -> NotificationResponse:
        try:
            notification = await db.get(Notification, notification_id)
            if not notification:
                raise NotFoundException("Notificação", str(notification_id))

            notification.read = True
            await db.commit()
            return NotificationResponse.model_validate(notification)
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao marcar notificação como lida: {e}")
            raise

    async def mark_all_read(self, db: AsyncSession, user_id: UUID) -> int:
        try:
            result = await db.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.read.is_(False))
                .values(read=True)
            )
            await db.commit()
            return result.rowcount or 0
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao marcar notificações como lidas: {e}")
            raise


notification_service = NotificationService()
