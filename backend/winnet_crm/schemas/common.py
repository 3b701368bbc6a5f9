"""
Schemas comuns
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class SuccessResponse(BaseModel):
    """Resposta de sucesso"""
    success: bool = Field(default=True, description="Sucesso")
    message: str = Field(default="Operação realizada", description="Mensagem")


class ErrorResponse(BaseModel):
    """Resposta de erro"""
    error_code: str = Field(..., description="Código do erro")
    message: str = Field(..., description="Mensagem")
    details: Optional[dict] = Field(None, description="Detalhes")
    timestamp: datetime = Field(default_factory=datetime.now, description="Data/hora")
