"""
Endpoints do funil comercial
"""
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.core.database import get_db
from winnet_crm.schemas.pipeline import (
    FollowUpRequest, MoveQuoteRequest, PipelineBoardResponse, PipelineMetrics
)
from winnet_crm.schemas.quote import QuoteDetailResponse
from winnet_crm.services.pipeline_service import pipeline_service

router = APIRouter()


@router.get("/board", response_model=PipelineBoardResponse, summary="Funil por estágio")
async def board(db: AsyncSession = Depends(get_db)):
    """Seis estágios com os orçamentos, probabilidade e dias no estágio"""
    return await pipeline_service.get_board(db)


@router.get("/metrics", response_model=PipelineMetrics, summary="Métricas do funil")
async def metrics(db: AsyncSession = Depends(get_db)):
    return await pipeline_service.get_metrics(db)


@router.post("/quotes/{quote_id}/move", response_model=QuoteDetailResponse, summary="Mover orçamento")
async def move_quote(
    quote_id: UUID,
    data: MoveQuoteRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Move o orçamento para outro estágio

    - **closed**: aprova (gera venda e lançamento)
    - **lost**: rejeita
    - **proposal/negotiation**: enviado
    - **lead/qualification**: rascunho
    """
    return await pipeline_service.move_quote(db, quote_id, data.stage, data.user_id)


@router.post("/quotes/{quote_id}/follow-up", response_model=QuoteDetailResponse, summary="Agendar follow-up")
async def follow_up(
    quote_id: UUID,
    data: FollowUpRequest,
    db: AsyncSession = Depends(get_db)
):
    return await pipeline_service.add_follow_up(db, quote_id, data.follow_up_date, data.note, data.user_id)
