"""
Eventos da aplicação

1. EventBus: eventos de domínio emitidos pelo motor de cascata
   (orçamento aprovado, pagamento confirmado...) e consumidos por
   assinantes como o despachante de notificações
2. ChangeFeed: fluxo de alterações por tabela (insert/update/delete),
   alimentado pelos eventos de sessão do SQLAlchemy após cada commit
"""
import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Type
from uuid import UUID

from loguru import logger
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from winnet_crm.core.config import settings
from winnet_crm.core.timeutils import utcnow


# ==================== Eventos de domínio ====================

@dataclass
class DomainEvent:
    """Evento de domínio base"""
    occurred_at: datetime = field(default_factory=utcnow, init=False)


@dataclass
class QuoteApproved(DomainEvent):
    quote_id: UUID
    quote_no: str
    sale_id: UUID
    sale_ref: str
    total: Decimal
    user_id: Optional[UUID] = None
    client_name: Optional[str] = None


@dataclass
class QuoteRejected(DomainEvent):
    quote_id: UUID
    quote_no: str
    user_id: Optional[UUID] = None
    client_name: Optional[str] = None


@dataclass
class SaleCreated(DomainEvent):
    sale_id: UUID
    total: Decimal
    user_id: Optional[UUID] = None


@dataclass
class PaymentConfirmed(DomainEvent):
    sale_id: UUID
    amount: Decimal
    user_id: Optional[UUID] = None


@dataclass
class FollowUpScheduled(DomainEvent):
    quote_id: UUID
    follow_up_date: date
    note: str
    user_id: Optional[UUID] = None


Handler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    """Barramento de eventos de domínio em processo"""

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    async def publish(self, domain_event: DomainEvent) -> None:
        handlers = list(self._handlers[type(domain_event)])
        logger.debug(f"Evento {type(domain_event).__name__} -> {len(handlers)} assinante(s)")
        for handler in handlers:
            await handler(domain_event)


event_bus = EventBus()


# ==================== Change feed ====================

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
ALL_EVENT_TYPES = frozenset({INSERT, UPDATE, DELETE})


@dataclass
class ChangeEvent:
    """Alteração confirmada em uma tabela"""
    event_type: str
    collection: str
    old: Optional[Dict[str, Any]]
    new: Optional[Dict[str, Any]]


_CLOSED = object()


class Subscription:
    """Assinatura de uma tabela; iterável assíncrono de ChangeEvent"""

    def __init__(
        self,
        feed: "ChangeFeed",
        collection: str,
        event_types: Set[str],
        max_pending: Optional[int] = None
    ):
        self.collection = collection
        self.event_types = event_types
        self._feed = feed
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending or settings.CHANGE_FEED_MAX_PENDING)
        self.closed = False
        self.dropped = 0

    def matches(self, change: ChangeEvent) -> bool:
        return change.collection == self.collection and change.event_type in self.event_types

    def _put(self, item) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(f"Assinatura de {self.collection} cheia; alteração mais antiga descartada")
        self._queue.put_nowait(item)

    def deliver(self, change: ChangeEvent) -> None:
        if not self.closed:
            self._put(change)

    def pending(self) -> int:
        return self._queue.qsize() - (1 if self.closed else 0)

    async def _next(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            # Recoloca a marca para as próximas leituras
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    async def get(self, timeout: Optional[float] = None) -> ChangeEvent:
        """Próxima alteração; StopAsyncIteration se a assinatura foi encerrada"""
        if timeout is None:
            return await self._next()
        return await asyncio.wait_for(self._next(), timeout)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed.unsubscribe(self)
        self._put(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self._next()


class ChangeFeed:
    """Distribui alterações confirmadas para os assinantes de cada tabela"""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def subscribe(
        self,
        collection: str,
        event_types: Optional[Iterable[str]] = None,
        max_pending: Optional[int] = None
    ) -> Subscription:
        types = set(event_types) if event_types else set(ALL_EVENT_TYPES)
        unknown = types - ALL_EVENT_TYPES
        if unknown:
            raise ValueError(f"Tipos de evento inválidos: {sorted(unknown)}")
        subscription = Subscription(self, collection, types, max_pending)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, change: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            if subscription.matches(change):
                subscription.deliver(change)


change_feed = ChangeFeed()

_PENDING_KEY = "winnet_pending_changes"


def _row_snapshot(state) -> Dict[str, Any]:
    # state.dict evita carregar atributos expirados dentro do flush
    return {
        attr.key: state.dict.get(attr.key)
        for attr in state.mapper.column_attrs
    }


def _previous_snapshot(state) -> Dict[str, Any]:
    data = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            data[attr.key] = history.deleted[0]
        else:
            data[attr.key] = state.dict.get(attr.key)
    return data


def _collection_of(obj) -> Optional[str]:
    return getattr(obj, "__tablename__", None)


def _collect_changes(session: Session, flush_context) -> None:
    pending = session.info.setdefault(_PENDING_KEY, [])

    for obj in session.new:
        collection = _collection_of(obj)
        if collection:
            pending.append(ChangeEvent(INSERT, collection, None, _row_snapshot(inspect(obj))))

    for obj in session.dirty:
        collection = _collection_of(obj)
        if collection and session.is_modified(obj, include_collections=False):
            state = inspect(obj)
            pending.append(ChangeEvent(UPDATE, collection, _previous_snapshot(state), _row_snapshot(state)))

    for obj in session.deleted:
        collection = _collection_of(obj)
        if collection:
            pending.append(ChangeEvent(DELETE, collection, _row_snapshot(inspect(obj)), None))


def _publish_changes(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    for change in pending:
        change_feed.publish(change)


def _discard_changes(session: Session, previous_transaction=None) -> None:
    session.info.pop(_PENDING_KEY, None)


_installed = False


def install_change_tracking() -> None:
    """Registra os ouvintes de sessão (uma única vez por processo)"""
    global _installed
    if _installed:
        return
    event.listen(Session, "after_flush", _collect_changes)
    event.listen(Session, "after_commit", _publish_changes)
    event.listen(Session, "after_rollback", _discard_changes)
    _installed = True
