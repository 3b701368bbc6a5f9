"""
Endpoints de clientes
"""
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.core.database import get_db
from winnet_crm.schemas.client import (
    ClientCreateRequest, ClientUpdateRequest, ClientResponse, PaginatedClientListResponse
)
from winnet_crm.schemas.common import SuccessResponse
from winnet_crm.services.client_service import client_service

router = APIRouter()


@router.post("/", response_model=ClientResponse, status_code=201, summary="Cadastrar cliente")
async def create_client(
    data: ClientCreateRequest,
    db: AsyncSession = Depends(get_db)
):
    return await client_service.create_client(db, data)


@router.get("/", response_model=PaginatedClientListResponse, summary="Listar clientes")
async def list_clients(
    name: Optional[str] = Query(None, description="Filtro por nome"),
    status: Optional[str] = Query(None, description="Filtro por status"),
    page: int = Query(1, ge=1, description="Página"),
    page_size: int = Query(20, ge=1, le=100, description="Itens por página"),
    db: AsyncSession = Depends(get_db)
):
    return await client_service.list_clients(db, name=name, status=status, page=page, page_size=page_size)


@router.get("/{client_id}", response_model=ClientResponse, summary="Detalhe do cliente")
async def get_client(client_id: UUID, db: AsyncSession = Depends(get_db)):
    client = await client_service.get_client(db, client_id)
    return ClientResponse.model_validate(client)


@router.patch("/{client_id}", response_model=ClientResponse, summary="Atualizar cliente")
async def update_client(
    client_id: UUID,
    data: ClientUpdateRequest,
    db: AsyncSession = Depends(get_db)
):
    return await client_service.update_client(db, client_id, data)


@router.delete("/{client_id}", response_model=SuccessResponse, summary="Excluir cliente")
async def delete_client(client_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Exclui o cliente

    Clientes com orçamentos não podem ser excluídos (409).
    """
    await client_service.delete_client(db, client_id)
    return SuccessResponse(message="Cliente excluído")
