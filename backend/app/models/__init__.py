"""Notice Engine - Data Models"""
from .letters import (
    # Enums
    TemplateType, CurrencyUnit, ManualField, ClientField,
    # Input
    RawRecord, ValidationResult,
    # Letter unit
    ManualFields, PolicyEntry, ClientInfo, LetterUnit,
    # Results
    PreparedLetters, LetterStats, GeneratedLetter, GenerationResult,
)

__all__ = [
    "TemplateType", "CurrencyUnit", "ManualField", "ClientField",
    "RawRecord", "ValidationResult",
    "ManualFields", "PolicyEntry", "ClientInfo", "LetterUnit",
    "PreparedLetters", "LetterStats", "GeneratedLetter", "GenerationResult",
]
