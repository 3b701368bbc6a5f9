"""
Serviço de clientes
"""
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc
from loguru import logger

from winnet_crm.core.middleware import AppException, ConflictException, NotFoundException
from winnet_crm.models.client import Client
from winnet_crm.models.quote import Quote
from winnet_crm.schemas.client import (
    ClientCreateRequest, ClientUpdateRequest, ClientResponse, PaginatedClientListResponse
)


class ClientService:
    """Cadastro de clientes (CRUD simples, sem cascata)"""

    async def get_client(self, db: AsyncSession, client_id: UUID) -> Client:
        client = await db.get(Client, client_id)
        if not client:
            raise NotFoundException("Cliente", str(client_id))
        return client

    async def create_client(self, db: AsyncSession, data: ClientCreateRequest) -> ClientResponse:
        try:
            client = Client(**data.model_dump())
            db.add(client)
            await db.commit()

            logger.info(f"Cliente cadastrado: {client.name}")
            return ClientResponse.model_validate(client)
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao cadastrar cliente: {e}")
            raise

    async def update_client(
        self,
        db: AsyncSession,
        client_id: UUID,
        data: ClientUpdateRequest
    ) -> ClientResponse:
        try:
            client = await self.get_client(db, client_id)
            for key, value in data.model_dump(exclude_unset=True).items():
                if key in ("name", "status") and value is None:
                    continue
                setattr(client, key, value)

            await db.commit()
            return ClientResponse.model_validate(client)
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao atualizar cliente: {e}")
            raise

    async def delete_client(self, db: AsyncSession, client_id: UUID) -> bool:
        """Exclui cliente sem orçamentos"""
        try:
            client = await self.get_client(db, client_id)

            result = await db.execute(select(func.count(Quote.quote_id)).where(Quote.client_id == client_id))
            quote_count = result.scalar() or 0
            if quote_count:
                raise ConflictException(
                    f"Cliente {client.name} possui {quote_count} orçamento(s) e não pode ser excluído",
                    details={"client_id": str(client_id), "quotes": quote_count}
                )

            await db.delete(client)
            await db.commit()
            return True
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao excluir cliente: {e}")
            raise

    async def list_clients(
        self,
        db: AsyncSession,
        name: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> PaginatedClientListResponse:
        try:
            query = select(Client)
            if name:
                query = query.where(Client.name.ilike(f"%{name}%"))
            if status:
                query = query.where(Client.status == status)

            count_query = select(func.count()).select_from(query.subquery())
            total_result = await db.execute(count_query)
            total = total_result.scalar() or 0

            offset = (page - 1) * page_size
            query = query.order_by(desc(Client.created_at)).offset(offset).limit(page_size)
            result = await db.execute(query)

            return PaginatedClientListResponse(
                total=total,
                page=page,
                page_size=page_size,
                data=[ClientResponse.model_validate(c) for c in result.scalars().all()]
            )
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Falha ao listar clientes: {e}")
            raise


client_service = ClientService()
