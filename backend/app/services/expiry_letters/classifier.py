"""
Notice Engine - Template Classifier

Maps a coverage category ("ramo") to the letter template it is printed with.
Health covers health, life and medical lines; everything else is General.
"""
from __future__ import annotations
from typing import Optional

from ...models.letters import TemplateType

HEALTH_KEYWORDS = ("salud", "vida", "medic")


def determine_template_type(coverage_category: Optional[str]) -> TemplateType:
    """Case-insensitive substring match against HEALTH_KEYWORDS."""
    category = (coverage_category or "").lower()
    if any(keyword in category for keyword in HEALTH_KEYWORDS):
        return TemplateType.HEALTH
    return TemplateType.GENERAL
