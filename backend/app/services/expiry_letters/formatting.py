"""
Notice Engine - Formatting Primitives

Bolivian Spanish (es-BO) presentation helpers used by grouping, rendering,
export and messaging:
- Amounts use "." for thousands and "," for decimals, always 2 decimals
- Dates are printed long-form ("1 de mayo de 2025") on letters and as
  YYYYMMDD in file names
- Client names are sanitized before they become part of a file name
"""
from __future__ import annotations
import math
import re
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as date_parser

from ...models.letters import TemplateType

NOT_SPECIFIED = "No especificado"

SPANISH_MONTHS = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

# Latin letters (accented range and ñ/Ñ included) and whitespace survive
_FILENAME_STRIP = re.compile(r"[^a-zA-ZÀ-ÖØ-öø-ÿ\s]")
_WHITESPACE = re.compile(r"\s+")

FILE_PREFIXES = {
    TemplateType.HEALTH: "SALUD",
    TemplateType.GENERAL: "VCMTO",
}


def _group_thousands(amount: float) -> str:
    # 1,234.56 -> 1.234,56
    return f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")


def _is_missing(amount: Any) -> bool:
    if amount is None:
        return True
    try:
        return math.isnan(float(amount))
    except (TypeError, ValueError):
        return True


def format_currency(amount: Optional[float]) -> str:
    """Format an amount in bolivianos."""
    if _is_missing(amount):
        return NOT_SPECIFIED
    return f"Bs. {_group_thousands(float(amount))}"


def format_usd(amount: Optional[float]) -> str:
    """Format an amount in US dollars, local style ("$us. 1.234,56")."""
    if _is_missing(amount):
        return NOT_SPECIFIED
    return f"$us. {_group_thousands(float(amount))}"


def parse_date(value: Any) -> Optional[date]:
    """
    Parse an expiry date coming from ingestion.

    ISO strings are read as such; anything else is parsed day-first, the way
    dates are written in the source spreadsheets (01/05/2025 = 1 May 2025).
    Returns None when the value cannot be read as a date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def format_date(value: date) -> str:
    """Long Spanish date for the letter body."""
    return f"{value.day} de {SPANISH_MONTHS[value.month - 1]} de {value.year}"


def format_date_short(value: date) -> str:
    return value.strftime("%Y%m%d")


def sanitize_client_name(client_name: str) -> str:
    """Keep letters and spaces, then SNAKE_UPPER the result."""
    cleaned = _FILENAME_STRIP.sub("", client_name or "").strip()
    return _WHITESPACE.sub("_", cleaned).upper()


def generate_file_name(client_name: str, template_type: TemplateType, today: Optional[date] = None) -> str:
    """
    Build the PDF file name for a letter.

    Example: 20250501-AVISO_VCMTO_JUAN_PEREZ.pdf
    """
    today = today or date.today()
    prefix = FILE_PREFIXES[TemplateType(template_type)]
    return f"{format_date_short(today)}-AVISO_{prefix}_{sanitize_client_name(client_name)}.pdf"


def generate_bundle_name(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"Cartas_Vencimiento_{today.isoformat()}.zip"
