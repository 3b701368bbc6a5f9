"""
Schemas de clientes
"""
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator


class ClientStatus:
    """Status do cliente"""
    LEAD = "lead"
    ACTIVE = "active"
    INACTIVE = "inactive"

    ALL = (LEAD, ACTIVE, INACTIVE)


def _check_status(v):
    if v is not None and v not in ClientStatus.ALL:
        raise ValueError(f"Status deve ser um de: {', '.join(ClientStatus.ALL)}")
    return v


class ClientCreateRequest(BaseModel):
    """Cadastro de cliente"""
    name: str = Field(..., min_length=1, max_length=255, description="Nome")
    email: Optional[EmailStr] = Field(None, description="E-mail")
    phone: Optional[str] = Field(None, max_length=50, description="Telefone")
    company: Optional[str] = Field(None, max_length=255, description="Empresa")
    lead_origin: Optional[str] = Field(None, max_length=100, description="Origem do lead")
    status: str = Field(default=ClientStatus.LEAD, description="Status")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)


class ClientUpdateRequest(BaseModel):
    """Atualização de cliente"""
    name: Optional[str] = Field(None, min_length=1, max_length=255, description="Nome")
    email: Optional[EmailStr] = Field(None, description="E-mail")
    phone: Optional[str] = Field(None, max_length=50, description="Telefone")
    company: Optional[str] = Field(None, max_length=255, description="Empresa")
    lead_origin: Optional[str] = Field(None, max_length=100, description="Origem do lead")
    status: Optional[str] = Field(None, description="Status")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)


class ClientResponse(BaseModel):
    """Cliente"""
    model_config = ConfigDict(from_attributes=True)

    client_id: UUID = Field(..., description="ID do cliente")
    name: str = Field(..., description="Nome")
    email: Optional[str] = Field(None, description="E-mail")
    phone: Optional[str] = Field(None, description="Telefone")
    company: Optional[str] = Field(None, description="Empresa")
    lead_origin: Optional[str] = Field(None, description="Origem do lead")
    status: str = Field(..., description="Status")
    created_at: datetime = Field(..., description="Criado em")
    updated_at: datetime = Field(..., description="Atualizado em")


class PaginatedClientListResponse(BaseModel):
    """Lista paginada de clientes"""
    total: int = Field(..., description="Total de registros")
    page: int = Field(..., description="Página atual")
    page_size: int = Field(..., description="Tamanho da página")
    data: List[ClientResponse] = Field(..., description="Clientes")
