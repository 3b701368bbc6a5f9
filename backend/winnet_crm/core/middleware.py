"""
Tratamento unificado de exceções e middleware de logs

Fornece:
1. Captura global de exceções com resposta de erro padronizada
2. Log de requisição/resposta
3. ID de rastreio por requisição
4. Monitoramento de desempenho
"""
import os
import sys
import time
import uuid
import traceback
from typing import Callable, Any
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from loguru import logger

from winnet_crm.core.config import settings


# ==================== Exceções da aplicação ====================

class AppException(Exception):
    """Exceção base da aplicação"""

    def __init__(
        self,
        message: str,
        error_code: str = "APP_ERROR",
        status_code: int = 500,
        details: dict = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationException(AppException):
    """Dados de entrada inválidos (orçamento / item)"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class NotFoundException(AppException):
    """Recurso não encontrado"""

    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} não encontrado"
        if resource_id:
            message = f"{resource} [{resource_id}] não encontrado"
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource": resource, "resource_id": resource_id}
        )


class BusinessException(AppException):
    """Regra de negócio violada"""

    def __init__(self, message: str, error_code: str = "BUSINESS_ERROR", details: dict = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )


class InvalidTransitionException(AppException):
    """Transição de status não permitida"""

    def __init__(self, resource: str, current: str, target: str):
        super().__init__(
            message=f"{resource} com status '{current}' não pode passar para '{target}'",
            error_code="INVALID_TRANSITION",
            status_code=409,
            details={"resource": resource, "current_status": current, "target_status": target}
        )


class ConflictException(AppException):
    """Conflito com o estado atual do recurso"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details=details
        )


class CascadeFailure(AppException):
    """Falha em uma etapa da cascata orçamento -> venda -> lançamento

    A transação inteira é desfeita; `details` identifica o orçamento e a
    etapa que falhou para conciliação manual.
    """

    def __init__(self, quote_id: str, step: str, reason: str):
        super().__init__(
            message=f"Falha na cascata do orçamento {quote_id} (etapa: {step}): {reason}",
            error_code="CASCADE_FAILURE",
            status_code=500,
            details={"quote_id": quote_id, "step": step, "reason": reason}
        )


class NotificationFailure(AppException):
    """Falha ao gravar notificação (apenas registrada em log)"""

    def __init__(self, reason: str, details: dict = None):
        super().__init__(
            message=f"Falha ao enviar notificação: {reason}",
            error_code="NOTIFICATION_FAILURE",
            status_code=500,
            details=details
        )


# ==================== Configuração de logs ====================

def _request_id_filter(record) -> bool:
    record["extra"].setdefault("request_id", "-")
    return True


def configure_logging(app_name: str = None):
    """Configura o loguru"""
    app_name = app_name or settings.APP_NAME

    # Remove o handler padrão
    logger.remove()

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<blue>[{extra[request_id]}]</blue> - "
        "<level>{message}</level>"
    )

    file_format = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
        "{level: <8} | "
        "{name}:{function}:{line} | "
        "[{extra[request_id]}] | "
        "{message}"
    )

    logger.add(
        sys.stderr,
        format=console_format,
        level=settings.LOG_LEVEL,
        colorize=True,
        filter=_request_id_filter
    )

    if settings.LOG_TO_FILE:
        log_dir = settings.LOG_DIR

        # Log geral
        logger.add(
            os.path.join(log_dir, f"{app_name}_{{time:YYYY-MM-DD}}.log"),
            format=file_format,
            level=settings.LOG_LEVEL,
            rotation="00:00",
            retention="30 days",
            compression="gz",
            filter=_request_id_filter
        )

        # Log de erros
        logger.add(
            os.path.join(log_dir, f"{app_name}_error_{{time:YYYY-MM-DD}}.log"),
            format=file_format,
            level="ERROR",
            rotation="00:00",
            retention="60 days",
            compression="gz",
            filter=_request_id_filter
        )

    return logger


# ==================== Contexto da requisição ====================

class RequestContext:
    """Contexto da requisição corrente"""

    _context = {}

    @classmethod
    def set(cls, key: str, value: Any):
        cls._context[key] = value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        return cls._context.get(key, default)

    @classmethod
    def clear(cls):
        cls._context.clear()

    @classmethod
    def get_request_id(cls) -> str:
        return cls.get("request_id", "-")


# ==================== Middlewares ====================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware de log das requisições"""

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        RequestContext.set("request_id", request_id)

        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path
        query = str(request.query_params) if request.query_params else ""

        with logger.contextualize(request_id=request_id):
            logger.info(f"Início da requisição | {method} {path} | IP: {client_ip} | Query: {query}")

            try:
                response = await call_next(request)

                process_time = round((time.time() - start_time) * 1000, 2)

                logger.info(
                    f"Requisição concluída | {method} {path} | "
                    f"Status: {response.status_code} | "
                    f"Tempo: {process_time}ms"
                )

                response.headers["X-Request-ID"] = request_id
                response.headers["X-Process-Time"] = f"{process_time}ms"

                return response

            except Exception as e:
                process_time = round((time.time() - start_time) * 1000, 2)
                logger.error(
                    f"Erro na requisição | {method} {path} | "
                    f"Erro: {str(e)} | "
                    f"Tempo: {process_time}ms"
                )
                raise
            finally:
                RequestContext.clear()


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware de monitoramento de desempenho"""

    # Limite de requisição lenta (ms)
    SLOW_REQUEST_THRESHOLD = 1000

    async def dispatch(self, request: Request, call_next: Callable):
        start_time = time.time()

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000

        if process_time > self.SLOW_REQUEST_THRESHOLD:
            request_id = getattr(request.state, "request_id", "-")
            with logger.contextualize(request_id=request_id):
                logger.warning(
                    f"Requisição lenta | {request.method} {request.url.path} | "
                    f"Tempo: {process_time:.2f}ms"
                )

        return response


# ==================== Handlers de exceção ====================

def create_error_response(
    request: Request,
    error_code: str,
    message: str,
    status_code: int,
    details: dict = None
) -> JSONResponse:
    """Monta a resposta de erro padronizada"""
    request_id = getattr(request.state, "request_id", "-")

    response_body = {
        "success": False,
        "error": {
            "code": error_code,
            "message": message,
            "details": details or {},
            "timestamp": datetime.now().isoformat(),
            "request_id": request_id,
            "path": str(request.url.path)
        }
    }

    return JSONResponse(
        status_code=status_code,
        content=response_body
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Exceções da aplicação"""
    request_id = getattr(request.state, "request_id", "-")

    with logger.contextualize(request_id=request_id):
        if exc.status_code >= 500:
            logger.error(f"Erro da aplicação | {exc.error_code}: {exc.message}")
        else:
            logger.warning(f"Erro da aplicação | {exc.error_code}: {exc.message}")

    return create_error_response(
        request=request,
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Exceções HTTP"""
    request_id = getattr(request.state, "request_id", "-")

    with logger.contextualize(request_id=request_id):
        logger.warning(f"Erro HTTP | {exc.status_code}: {exc.detail}")

    error_code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        408: "REQUEST_TIMEOUT",
        409: "CONFLICT",
        422: "UNPROCESSABLE_ENTITY",
        429: "TOO_MANY_REQUESTS",
        500: "INTERNAL_SERVER_ERROR",
        502: "BAD_GATEWAY",
        503: "SERVICE_UNAVAILABLE",
        504: "GATEWAY_TIMEOUT"
    }

    error_code = error_code_map.get(exc.status_code, "HTTP_ERROR")

    return create_error_response(
        request=request,
        error_code=error_code,
        message=str(exc.detail),
        status_code=exc.status_code
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Erros de validação da requisição"""
    request_id = getattr(request.state, "request_id", "-")

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"]
        })

    with logger.contextualize(request_id=request_id):
        logger.warning(f"Erro de validação | {errors}")

    if len(errors) == 1:
        message = f"Parâmetro inválido: {errors[0]['field']} - {errors[0]['message']}"
    else:
        message = "Vários parâmetros inválidos, verifique a requisição"

    return create_error_response(
        request=request,
        error_code="VALIDATION_ERROR",
        message=message,
        status_code=422,
        details={"validation_errors": errors}
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exceções não tratadas"""
    request_id = getattr(request.state, "request_id", "-")

    tb = traceback.format_exc()

    with logger.contextualize(request_id=request_id):
        logger.error(f"Exceção não tratada | {type(exc).__name__}: {str(exc)}\n{tb}")

    return create_error_response(
        request=request,
        error_code="INTERNAL_SERVER_ERROR",
        message="Erro interno do servidor, tente novamente mais tarde",
        status_code=500,
        details={"exception_type": type(exc).__name__}
    )


# ==================== Registro ====================

def register_exception_handlers(app: FastAPI):
    """Registra os handlers de exceção"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


def register_middlewares(app: FastAPI):
    """Registra os middlewares"""
    # Executados na ordem inversa à de registro
    app.add_middleware(PerformanceMiddleware)
    app.add_middleware(RequestLoggingMiddleware)


def setup_error_handling(app: FastAPI):
    """
    Configura tratamento de erros e logs

    Chamado em main.py:
    from winnet_crm.core.middleware import setup_error_handling
    setup_error_handling(app)
    """
    configure_logging()
    register_middlewares(app)
    register_exception_handlers(app)

    logger.info("Middleware de erros e logs inicializado")
