"""
Rotas da API v1
"""
from fastapi import APIRouter

from winnet_crm.api.v1.endpoints import clients, financial, notifications, pipeline, quotes, sales

api_router = APIRouter()
api_router.include_router(clients.router, prefix="/clients", tags=["Clientes"])
api_router.include_router(quotes.router, prefix="/quotes", tags=["Orçamentos"])
api_router.include_router(sales.router, prefix="/sales", tags=["Vendas"])
api_router.include_router(financial.router, prefix="/financial", tags=["Financeiro"])
api_router.include_router(pipeline.router, prefix="/pipeline", tags=["Pipeline"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notificações"])
