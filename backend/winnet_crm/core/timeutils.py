"""
Utilitários de data/hora
Todos os timestamps são gravados em UTC
"""
import calendar
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite devolve datetimes sem fuso; assume UTC nesses casos"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(value: date, months: int) -> date:
    """Primeiro dia do mês deslocado em `months` meses"""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def shift_months(value, months: int):
    """Mesmo dia `months` meses depois (ou antes); dias 29-31 caem no último dia do mês"""
    index = value.year * 12 + (value.month - 1) + months
    year, month = index // 12, index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def month_key(value: date) -> str:
    return value.strftime("%Y-%m")
