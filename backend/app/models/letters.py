"""
Notice Engine - Expiry Letter Models

These dataclasses are the only structures that flow through the letter pipeline:

- RawRecord → Validator → Classifier → Grouping Engine → LetterUnit
- LetterUnit → Completeness Engine → (needs_review, missing_data)
- LetterUnit → Mutation API → Completeness Engine → LetterUnit

RawRecord is immutable once ingested. ManualFields keeps every ingested value
next to its operator-confirmed counterpart; the "original" side is written
once at grouping time and never again.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union


# =============================================================================
# ENUMS
# =============================================================================

class TemplateType(str, Enum):
    """Letter template, derived from the coverage category."""
    HEALTH = "salud"
    GENERAL = "general"


class CurrencyUnit(str, Enum):
    """Denominations accepted for deductible and extraterritoriality amounts."""
    BOLIVIANOS = "Bs."
    DOLLARS = "$us."


class ManualField(str, Enum):
    """
    Editable ManualFields slots.

    Only "current" values are listed here. Original snapshots are not
    addressable, so no edit can ever target them.
    """
    PREMIUM = "premium"
    INSURED_VALUE = "insured_value"
    INSURED_MATTER = "insured_matter"
    INSURED_MEMBERS = "insured_members"
    RENEWAL_PREMIUM = "renewal_premium"
    DEDUCTIBLES = "deductibles"
    DEDUCTIBLES_CURRENCY = "deductibles_currency"
    TERRITORIALITY = "territoriality"
    TERRITORIALITY_CURRENCY = "territoriality_currency"
    SPECIFIC_CONDITIONS = "specific_conditions"


class ClientField(str, Enum):
    """Client contact fields an operator may edit."""
    PHONE = "phone"
    EMAIL = "email"


# =============================================================================
# VALUE COERCION
# =============================================================================

def to_amount(value: Any) -> Optional[float]:
    """Coerce an edited amount. Blank means "not provided"."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if math.isnan(amount) or math.isinf(amount):
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def to_members(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        raise ValueError("Insured members must be a list of names")
    return [str(member) for member in value]


def to_currency(value: Any) -> CurrencyUnit:
    try:
        return CurrencyUnit(value)
    except ValueError:
        raise ValueError(f"Unknown currency unit: {value!r}")


FIELD_COERCERS: Dict[ManualField, Callable[[Any], Any]] = {
    ManualField.PREMIUM: to_amount,
    ManualField.INSURED_VALUE: to_amount,
    ManualField.INSURED_MATTER: to_text,
    ManualField.INSURED_MEMBERS: to_members,
    ManualField.RENEWAL_PREMIUM: to_amount,
    ManualField.DEDUCTIBLES: to_amount,
    ManualField.DEDUCTIBLES_CURRENCY: to_currency,
    ManualField.TERRITORIALITY: to_amount,
    ManualField.TERRITORIALITY_CURRENCY: to_currency,
    ManualField.SPECIFIC_CONDITIONS: to_text,
}


def parse_manual_field(name: Union[str, ManualField]) -> ManualField:
    """Resolve a field name, rejecting anything that is not an editable slot."""
    if isinstance(name, ManualField):
        return name
    try:
        return ManualField(name)
    except ValueError:
        raise ValueError(f"'{name}' is not an editable manual field")


# =============================================================================
# INPUT: RAW RECORD
# =============================================================================

@dataclass(frozen=True)
class RawRecord:
    """One ingested policy row. Read-only for the whole pipeline."""
    client_name: str = ""
    policy_number: str = ""
    insurer: str = ""
    coverage_category: str = ""
    expiry_date: Optional[Union[str, date, datetime]] = None
    insured_value: Optional[float] = None
    premium: Optional[float] = None
    insured_matter: str = ""
    phone: str = ""
    email: str = ""
    agent_name: str = ""
    beneficiary: Optional[str] = None
    record_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawRecord":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class ValidationResult:
    """Outcome of checking one RawRecord for the minimum letter fields."""
    valid: bool
    errors: List[str] = field(default_factory=list)


# =============================================================================
# LETTER UNIT
# =============================================================================

@dataclass(frozen=True)
class ManualFields:
    """
    Editable overlay for one policy entry.

    Frozen: edits produce a new instance through with_value(), which only
    ever touches a current slot. The original member list is held as a tuple
    so it cannot be changed in place either.
    """
    premium: Optional[float] = None
    original_premium: Optional[float] = None
    insured_value: Optional[float] = None
    original_insured_value: Optional[float] = None
    insured_matter: str = ""
    original_insured_matter: str = ""
    insured_members: Optional[List[str]] = None
    original_insured_members: Optional[Tuple[str, ...]] = None

    # Health only
    renewal_premium: Optional[float] = None

    # General only
    deductibles: Optional[float] = None
    deductibles_currency: CurrencyUnit = CurrencyUnit.BOLIVIANOS
    territoriality: Optional[float] = None
    territoriality_currency: CurrencyUnit = CurrencyUnit.BOLIVIANOS
    specific_conditions: str = ""

    def __post_init__(self):
        if self.original_insured_members is not None:
            object.__setattr__(self, "original_insured_members", tuple(self.original_insured_members))

    def with_value(self, name: Union[str, ManualField], value: Any) -> "ManualFields":
        """Return a copy with one current field replaced."""
        manual_field = parse_manual_field(name)
        coerced = FIELD_COERCERS[manual_field](value)
        return replace(self, **{manual_field.value: coerced})

    def originals(self) -> Dict[str, Any]:
        return {
            "original_premium": self.original_premium,
            "original_insured_value": self.original_insured_value,
            "original_insured_matter": self.original_insured_matter,
            "original_insured_members": (
                list(self.original_insured_members)
                if self.original_insured_members is not None else None
            ),
        }

    def with_originals_of(self, other: "ManualFields") -> "ManualFields":
        """Return a copy carrying another instance's original snapshots."""
        return replace(self, **other.originals())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "premium": self.premium,
            "original_premium": self.original_premium,
            "insured_value": self.insured_value,
            "original_insured_value": self.original_insured_value,
            "insured_matter": self.insured_matter,
            "original_insured_matter": self.original_insured_matter,
            "insured_members": list(self.insured_members) if self.insured_members is not None else None,
            "original_insured_members": (
                list(self.original_insured_members)
                if self.original_insured_members is not None else None
            ),
            "renewal_premium": self.renewal_premium,
            "deductibles": self.deductibles,
            "deductibles_currency": self.deductibles_currency.value,
            "territoriality": self.territoriality,
            "territoriality_currency": self.territoriality_currency.value,
            "specific_conditions": self.specific_conditions,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualFields":
        values = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        for key in ("deductibles_currency", "territoriality_currency"):
            if key in values:
                values[key] = CurrencyUnit(values[key])
        return cls(**values)


@dataclass
class PolicyEntry:
    """One policy row within a letter."""
    policy_number: str
    company: str
    branch: str
    expiry_date: str
    insured_value: Optional[float] = None
    premium: Optional[float] = None
    insured_members: Optional[List[str]] = None
    manual_fields: ManualFields = field(default_factory=ManualFields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_number": self.policy_number,
            "company": self.company,
            "branch": self.branch,
            "expiry_date": self.expiry_date,
            "insured_value": self.insured_value,
            "premium": self.premium,
            "insured_members": list(self.insured_members) if self.insured_members is not None else None,
            "manual_fields": self.manual_fields.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyEntry":
        return cls(
            policy_number=data["policy_number"],
            company=data.get("company", ""),
            branch=data.get("branch", ""),
            expiry_date=data.get("expiry_date", ""),
            insured_value=data.get("insured_value"),
            premium=data.get("premium"),
            insured_members=data.get("insured_members"),
            manual_fields=ManualFields.from_dict(data.get("manual_fields") or {}),
        )


@dataclass
class ClientInfo:
    """Client contact block printed on the letter."""
    name: str
    phone: str = ""
    email: str = ""
    address: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "phone": self.phone, "email": self.email, "address": self.address}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientInfo":
        return cls(
            name=data.get("name", ""),
            phone=data.get("phone") or "",
            email=data.get("email") or "",
            address=data.get("address") or "",
        )


@dataclass
class LetterUnit:
    """
    One generated letter: all policies of one client under one template.

    needs_review and missing_data are derived. They are recomputed by the
    Completeness Engine after construction and after every mutation.
    """
    id: str
    template_type: TemplateType
    reference_number: str
    date: str
    client: ClientInfo
    policies: List[PolicyEntry] = field(default_factory=list)
    executive: str = ""
    additional_conditions: str = ""
    source_record_ids: List[str] = field(default_factory=list)
    needs_review: bool = True
    missing_data: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_record_ids": list(self.source_record_ids),
            "template_type": self.template_type.value,
            "reference_number": self.reference_number,
            "date": self.date,
            "client": self.client.to_dict(),
            "policies": [p.to_dict() for p in self.policies],
            "executive": self.executive,
            "additional_conditions": self.additional_conditions,
            "needs_review": self.needs_review,
            "missing_data": list(self.missing_data),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LetterUnit":
        return cls(
            id=data["id"],
            source_record_ids=list(data.get("source_record_ids") or []),
            template_type=TemplateType(data["template_type"]),
            reference_number=data.get("reference_number", ""),
            date=data.get("date", ""),
            client=ClientInfo.from_dict(data.get("client") or {}),
            policies=[PolicyEntry.from_dict(p) for p in data.get("policies") or []],
            executive=data.get("executive", ""),
            additional_conditions=data.get("additional_conditions", ""),
            needs_review=data.get("needs_review", True),
            missing_data=list(data.get("missing_data") or []),
        )


# =============================================================================
# PREPARATION / EXPORT RESULTS
# =============================================================================

@dataclass
class PreparedLetters:
    """Grouped letters plus the records that could not be used."""
    letters: List[LetterUnit] = field(default_factory=list)
    valid_records: int = 0
    total_records: int = 0
    validation_errors: List[str] = field(default_factory=list)


@dataclass
class LetterStats:
    total_letters: int = 0
    health_count: int = 0
    general_count: int = 0
    need_review_count: int = 0
    total_policies: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_letters": self.total_letters,
            "health_count": self.health_count,
            "general_count": self.general_count,
            "need_review_count": self.need_review_count,
            "total_policies": self.total_policies,
        }


@dataclass
class GeneratedLetter:
    """Summary of one letter rendered into an export bundle."""
    letter_id: str
    client_name: str
    template_type: TemplateType
    file_name: str
    size_bytes: int
    policy_count: int
    needs_review: bool
    missing_data: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "letter_id": self.letter_id,
            "client_name": self.client_name,
            "template_type": self.template_type.value,
            "file_name": self.file_name,
            "size_bytes": self.size_bytes,
            "policy_count": self.policy_count,
            "needs_review": self.needs_review,
            "missing_data": list(self.missing_data),
        }


@dataclass
class GenerationResult:
    success: bool
    letters: List[GeneratedLetter] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    total_generated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "letters": [letter.to_dict() for letter in self.letters],
            "errors": list(self.errors),
            "total_generated": self.total_generated,
        }
