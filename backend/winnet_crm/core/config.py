"""
Configurações da aplicação
Lidas das variáveis de ambiente (arquivo .env carregado via python-dotenv)
"""
import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Configurações globais"""

    def __init__(self):
        self.APP_NAME: str = os.getenv("APP_NAME", "winnet_crm")
        self.DEBUG: bool = _env_bool("DEBUG", False)
        self.API_V1_PREFIX: str = os.getenv("API_V1_PREFIX", "/api/v1")

        # Banco de dados
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./winnet_crm.db")

        # Redis (sequência de numeração dos orçamentos)
        self.REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

        # Logs
        self.LOG_DIR: str = os.getenv("LOG_DIR", "logs")
        self.LOG_TO_FILE: bool = _env_bool("LOG_TO_FILE", True)
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

        # Alertas do fluxo de caixa
        self.LOW_BALANCE_THRESHOLD: Decimal = Decimal(os.getenv("LOW_BALANCE_THRESHOLD", "10000"))
        self.PENDING_PAYMENTS_ALERT: int = int(os.getenv("PENDING_PAYMENTS_ALERT", "5"))
        self.PENDING_SALES_ALERT: Decimal = Decimal(os.getenv("PENDING_SALES_ALERT", "50000"))

        # Janela das métricas do pipeline (meses)
        self.PIPELINE_LOOKBACK_MONTHS: int = int(os.getenv("PIPELINE_LOOKBACK_MONTHS", "12"))

        # Alterações pendentes por assinante do change feed; as mais antigas são descartadas
        self.CHANGE_FEED_MAX_PENDING: int = int(os.getenv("CHANGE_FEED_MAX_PENDING", "1000"))


settings = Settings()
