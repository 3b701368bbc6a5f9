"""
Modelos de clientes e usuários
"""
import uuid
from sqlalchemy import Column, String, DateTime, Boolean, Uuid, Index

from winnet_crm.core.database import Base
from winnet_crm.core.timeutils import utcnow


class User(Base):
    """Usuário do CRM"""
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="ID do usuário")
    name = Column(String(255), nullable=False, comment="Nome")
    email = Column(String(255), unique=True, nullable=False, comment="E-mail")
    role = Column(String(50), nullable=False, default="VENDEDOR", comment="Perfil: ADM_MASTER/VENDEDOR/SUPORTE")
    active = Column(Boolean, nullable=False, default=True, comment="Ativo")
    created_at = Column(DateTime(timezone=True), default=utcnow, comment="Criado em")


class Client(Base):
    """Cadastro de clientes"""
    __tablename__ = "clients"

    client_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="ID do cliente")
    name = Column(String(255), nullable=False, comment="Nome")
    email = Column(String(255), comment="E-mail")
    phone = Column(String(50), comment="Telefone")
    company = Column(String(255), comment="Empresa")
    lead_origin = Column(String(100), comment="Origem do lead")
    status = Column(String(50), nullable=False, default="lead", comment="Status: lead/active/inactive")
    created_at = Column(DateTime(timezone=True), default=utcnow, comment="Criado em")
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, comment="Atualizado em")

    __table_args__ = (
        Index('ix_client_name', 'name'),
        Index('ix_client_status', 'status'),
        {'comment': 'Clientes'}
    )
