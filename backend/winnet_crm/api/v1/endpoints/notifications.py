"""
Endpoints de notificações
"""
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.core.database import get_db
from winnet_crm.schemas.common import SuccessResponse
from winnet_crm.schemas.notification import NotificationResponse
from winnet_crm.services.notification_service import notification_service

router = APIRouter()


@router.get("/", response_model=List[NotificationResponse], summary="Notificações do usuário")
async def list_notifications(
    user_id: UUID = Query(..., description="Usuário"),
    unread_only: bool = Query(False, description="Somente não lidas"),
    limit: int = Query(50, ge=1, le=200, description="Quantidade máxima"),
    db: AsyncSession = Depends(get_db)
):
    return await notification_service.list_notifications(db, user_id, unread_only=unread_only, limit=limit)


@router.post("/{notification_id}/read", response_model=NotificationResponse, summary="Marcar como lida")
async def mark_read(notification_id: UUID, db: AsyncSession = Depends(get_db)):
    return await notification_service.mark_read(db, notification_id)


@router.post("/read-all", response_model=SuccessResponse, summary="Marcar todas como lidas")
async def mark_all_read(
    user_id: UUID = Query(..., description="Usuário"),
    db: AsyncSession = Depends(get_db)
):
    count = await notification_service.mark_all_read(db, user_id)
    return SuccessResponse(message=f"{count} notificação(ões) marcada(s) como lida(s)")
