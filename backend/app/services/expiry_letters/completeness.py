"""
Notice Engine - Completeness Engine

Decides whether a letter still needs manual review and lists, in a fixed
order, every gap an operator has to fill:

1. Reference number still carrying the manual placeholder (letter level)
2. Per policy, in policy order:
   - insured value, premium
   - Health: renewal premium
   - General: insured matter, deductible, extraterritoriality, specific conditions

Pure functions: no I/O, no hidden state. The same LetterUnit state always
yields the same (needs_review, missing_data).
"""
from __future__ import annotations
from dataclasses import replace
from typing import List, Optional, Tuple

from ...models.letters import LetterUnit, ManualFields, TemplateType

REFERENCE_PLACEHOLDER = "____"

MISSING_REFERENCE = "Número de Referencia manual"
MISSING_INSURED_VALUE = "Valor Asegurado"
MISSING_PREMIUM = "Prima"
MISSING_RENEWAL_PREMIUM = "Prima de renovación anual"
MISSING_INSURED_MATTER = "Materia Asegurada"
MISSING_DEDUCTIBLES = "Información de deducibles"
MISSING_TERRITORIALITY = "Información de extraterritorialidad"
MISSING_SPECIFIC_CONDITIONS = "Condiciones específicas"


def _missing_amount(amount: Optional[float]) -> bool:
    return amount is None or amount <= 0


def _missing_text(text: Optional[str]) -> bool:
    return not text or not text.strip()


def _policy_gaps(template_type: TemplateType, manual: ManualFields) -> List[str]:
    gaps = []

    if _missing_amount(manual.insured_value):
        gaps.append(MISSING_INSURED_VALUE)
    if _missing_amount(manual.premium):
        gaps.append(MISSING_PREMIUM)

    if template_type == TemplateType.HEALTH:
        if _missing_amount(manual.renewal_premium):
            gaps.append(MISSING_RENEWAL_PREMIUM)
    else:
        if _missing_text(manual.insured_matter):
            gaps.append(MISSING_INSURED_MATTER)
        if _missing_amount(manual.deductibles):
            gaps.append(MISSING_DEDUCTIBLES)
        if _missing_amount(manual.territoriality):
            gaps.append(MISSING_TERRITORIALITY)
        if _missing_text(manual.specific_conditions):
            gaps.append(MISSING_SPECIFIC_CONDITIONS)

    return gaps


def detect_missing_data(unit: LetterUnit) -> List[str]:
    """Ordered, human-readable list of unresolved fields."""
    missing = []

    if REFERENCE_PLACEHOLDER in (unit.reference_number or ""):
        missing.append(MISSING_REFERENCE)

    for index, policy in enumerate(unit.policies):
        label = f"Póliza {index + 1} ({policy.policy_number})"
        for gap in _policy_gaps(unit.template_type, policy.manual_fields):
            missing.append(f"{label}: {gap}")

    return missing


def evaluate_completeness(unit: LetterUnit, initial: bool = False) -> Tuple[bool, List[str]]:
    """
    Compute (needs_review, missing_data) for a letter.

    With initial=True (right after grouping) General letters are always
    flagged for review. Re-evaluation after an edit only looks at gaps.
    """
    missing = detect_missing_data(unit)
    needs_review = bool(missing)
    if initial and unit.template_type == TemplateType.GENERAL:
        needs_review = True
    return needs_review, missing


def annotate(unit: LetterUnit, initial: bool = False) -> LetterUnit:
    """Return a copy of the unit with its derived review state refreshed."""
    needs_review, missing = evaluate_completeness(unit, initial=initial)
    return replace(unit, needs_review=needs_review, missing_data=missing)
