"""
Testes do change feed e do barramento de eventos
"""
import asyncio

import pytest

from winnet_crm.core.events import (
    DELETE, INSERT, UPDATE, EventBus, PaymentConfirmed, QuoteRejected, change_feed
)
from winnet_crm.core.middleware import CascadeFailure
from winnet_crm.services.cascade_service import cascade_service

from conftest import create_test_client, create_test_quote


class TestChangeFeed:
    """Alterações entregues após o commit"""

    @pytest.mark.asyncio
    async def test_insert_delivered_after_commit(self, db_session):
        subscription = change_feed.subscribe("sales", [INSERT])
        try:
            client = await create_test_client(db_session)
            detail = await create_test_quote(db_session, client)
            result = await cascade_service.approve(db_session, detail.quote_id)

            assert subscription.pending() == 1
            change = await subscription.get(timeout=1)
            assert change.event_type == INSERT
            assert change.collection == "sales"
            assert change.old is None
            assert change.new["sale_id"] == result.sale.sale_id
            assert change.new["quote_id"] == detail.quote_id
        finally:
            subscription.close()

    @pytest.mark.asyncio
    async def test_update_carries_previous_values(self, db_session):
        client = await create_test_client(db_session)
        detail = await create_test_quote(db_session, client)

        subscription = change_feed.subscribe("quotes", [UPDATE])
        try:
            await cascade_service.approve(db_session, detail.quote_id)

            change = await subscription.get(timeout=1)
            assert change.old["status"] == "draft"
            assert change.new["status"] == "approved"
        finally:
            subscription.close()

    @pytest.mark.asyncio
    async def test_rolled_back_changes_are_not_delivered(self, db_session, monkeypatch):
        client = await create_test_client(db_session)
        detail = await create_test_quote(db_session, client)

        def broken_entry(sale, quote):
            raise RuntimeError("falha simulada")

        monkeypatch.setattr(cascade_service, "_build_inflow_entry", broken_entry)
        subscription = change_feed.subscribe("sales")
        try:
            with pytest.raises(CascadeFailure):
                await cascade_service.approve(db_session, detail.quote_id)
            assert subscription.pending() == 0
        finally:
            subscription.close()

    @pytest.mark.asyncio
    async def test_filters_by_collection_and_type(self, db_session):
        deletes = change_feed.subscribe("clients", [DELETE])
        inserts = change_feed.subscribe("clients", [INSERT])
        try:
            client = await create_test_client(db_session)
            await db_session.delete(client)
            await db_session.commit()

            assert inserts.pending() == 1
            assert deletes.pending() == 1
            deleted = await deletes.get(timeout=1)
            assert deleted.old["name"] == client.name
            assert deleted.new is None
        finally:
            deletes.close()
            inserts.close()

    def test_unknown_event_type(self):
        with pytest.raises(ValueError):
            change_feed.subscribe("sales", ["upsert"])

    @pytest.mark.asyncio
    async def test_closed_subscription_stops_receiving(self, db_session):
        subscription = change_feed.subscribe("clients")
        subscription.close()

        await create_test_client(db_session)

        assert subscription.pending() == 0

    @pytest.mark.asyncio
    async def test_close_ends_pending_iteration(self):
        """Consumidor aguardando termina quando a assinatura é encerrada"""
        subscription = change_feed.subscribe("clients")

        async def consume():
            return [change async for change in subscription]

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        subscription.close()

        assert await asyncio.wait_for(consumer, timeout=1) == []
        with pytest.raises(StopAsyncIteration):
            await subscription.get(timeout=1)

    @pytest.mark.asyncio
    async def test_full_subscription_drops_oldest(self, db_session):
        subscription = change_feed.subscribe("clients", [INSERT], max_pending=2)
        try:
            for name in ("Primeiro", "Segundo", "Terceiro"):
                await create_test_client(db_session, name)

            assert subscription.pending() == 2
            assert subscription.dropped == 1
            change = await subscription.get(timeout=1)
            assert change.new["name"] == "Segundo"
        finally:
            subscription.close()


class TestEventBus:

    @pytest.mark.asyncio
    async def test_handlers_receive_their_event_type(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(QuoteRejected, handler)
        bus.subscribe(QuoteRejected, handler)

        await bus.publish(QuoteRejected(quote_id=None, quote_no="QT1"))
        await bus.publish(PaymentConfirmed(sale_id=None, amount=0))

        assert len(received) == 1
        assert received[0].quote_no == "QT1"

        bus.unsubscribe(QuoteRejected, handler)
        await bus.publish(QuoteRejected(quote_id=None, quote_no="QT2"))
        assert len(received) == 1
