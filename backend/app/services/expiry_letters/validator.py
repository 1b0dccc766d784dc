"""
Notice Engine - Record Validator

Checks that a RawRecord carries the minimum data needed to print a letter.
Failures are data, not exceptions: one message per failing check, in check
order, so the operator sees every reason a record was left out.
"""
from __future__ import annotations
from typing import Optional

from ...models.letters import RawRecord, ValidationResult
from .formatting import parse_date

MIN_TEXT_LENGTH = 2


def _too_short(value: Optional[str]) -> bool:
    return not value or len(str(value).strip()) < MIN_TEXT_LENGTH


def validate_record_for_letter(record: RawRecord) -> ValidationResult:
    errors = []

    if _too_short(record.client_name):
        errors.append("Nombre del asegurado requerido")
    if _too_short(record.policy_number):
        errors.append("Número de póliza requerido")
    if _too_short(record.insurer):
        errors.append("Compañía aseguradora requerida")
    if _too_short(record.coverage_category):
        errors.append("Ramo del seguro requerido")
    if parse_date(record.expiry_date) is None:
        errors.append("Fecha de vencimiento requerida")
    if _too_short(record.agent_name):
        errors.append("Ejecutivo responsable requerido")

    return ValidationResult(valid=not errors, errors=errors)
