"""
Notice Engine - Letter Grouping Engine

Takes validated RawRecords and builds LetterUnits.

Grouping rules:
- One letter per (trimmed client name, template type), in first-seen order
- General: one PolicyEntry per record
- Health: records sharing a policy number merge into one PolicyEntry whose
  member list starts with the policyholder and never repeats a name

Every letter leaves this module already annotated by the Completeness Engine.
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from ...models.letters import (
    ClientInfo,
    CurrencyUnit,
    LetterUnit,
    ManualFields,
    PolicyEntry,
    PreparedLetters,
    RawRecord,
    TemplateType,
)
from .classifier import determine_template_type
from .completeness import REFERENCE_PLACEHOLDER, annotate
from .formatting import format_date, parse_date
from .validator import validate_record_for_letter

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_PREFIX = "SCPSA-"
POLICYHOLDER_TOKEN = "TITULAR"

HEALTH_CONDITIONS_TEMPLATE = (
    "Le informamos que a partir del *01/05/2025*, se excluye la cobertura del certificado "
    "asistencia al viajero y las pólizas se emiten en moneda nacional (BS)"
)

GENERAL_CONDITIONS_TEMPLATE = (
    "A partir del *01/12/2024* se aplica :\n"
    "-Deducible coaseguro: 10% del valor del siniestro mínimo Bs 1.000 aplicable para las "
    "coberturas de Daños Propios, Conmoción Civil, Huelgas, Daño Malicioso, Sabotaje, "
    "Vandalismo y Terrorismo.\n"
    "-Extraterritorialidad: PAGO DE EXTRA PRIMA DE BS 400 (CONTADO) SI ES SOLICITADO EN LA "
    "RENOVACION DE LA POLIZA, POSTERIOR A LA RENOVACION DE LA POLIZA, EXTRA PRIMA DE BS 500.-\n"
    "\"La suscripción de los seguros es en Bs y considerando que en los últimos meses se ha "
    "observado un incremento significativo en el valor de mercado de los bienes en general en "
    "nuestro país, solicitamos la revisión del valor asegurado de su vehículo. La finalidad de "
    "esta actualización es garantizar una protección correcta de su patrimonio y acorde al valor "
    "real actual de los bienes asegurados, con el fin de evitar la aplicación de infraseguro en "
    "caso de siniestro, como se encuentra establecido en el Código de Comercio, Art.1056.\""
)

CONDITIONS_TEMPLATES = {
    TemplateType.HEALTH: HEALTH_CONDITIONS_TEMPLATE,
    TemplateType.GENERAL: GENERAL_CONDITIONS_TEMPLATE,
}


def _same_name(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").strip().upper() == (b or "").strip().upper()


def build_insured_members(client_name: str, records: List[RawRecord]) -> List[str]:
    """
    Policyholder first, then each distinct member once.

    Blank names and the TITULAR placeholder are skipped. Duplicates are
    detected case-insensitively; the first spelling seen is kept.
    """
    holder = client_name.strip()
    members: List[str] = []
    seen = {holder.upper()}

    for record in records:
        name = (record.beneficiary or "").strip()
        if not name or name.upper() == POLICYHOLDER_TOKEN:
            continue
        if name.upper() in seen:
            continue
        seen.add(name.upper())
        members.append(name)

    return [holder] + members


def select_main_record(client_name: str, records: List[RawRecord]) -> RawRecord:
    """The policyholder's own row if present, otherwise the first row."""
    for record in records:
        if not (record.beneficiary or "").strip() or _same_name(record.beneficiary, client_name):
            return record
    return records[0]


class LetterGroupingEngine:
    """
    Build letters from validated records.

    Input: validated RawRecords, in ingestion order
    Output: annotated LetterUnits, one per (client, template type)

    Defaults (currency unit, reference prefix, issue date) are fixed at
    construction; grouping itself reads no ambient state.
    """

    def __init__(
        self,
        default_currency: CurrencyUnit = CurrencyUnit.BOLIVIANOS,
        reference_prefix: str = DEFAULT_REFERENCE_PREFIX,
        today: Optional[date] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.default_currency = CurrencyUnit(default_currency)
        self.reference_prefix = reference_prefix
        self.today = today
        self.id_factory = id_factory or (lambda: str(uuid4()))

    def issue_date(self) -> date:
        return self.today or date.today()

    def generate_reference_number(self) -> str:
        """Reference with a placeholder the operator must replace, e.g. SCPSA-____/2025."""
        return f"{self.reference_prefix}{REFERENCE_PLACEHOLDER}/{self.issue_date().year}"

    def group(self, records: List[RawRecord]) -> List[LetterUnit]:
        groups: Dict[Tuple[str, TemplateType], List[RawRecord]] = {}

        for record in records:
            key = (record.client_name.strip(), determine_template_type(record.coverage_category))
            groups.setdefault(key, []).append(record)

        letters = [
            self._build_letter(template_type, group_records)
            for (_, template_type), group_records in groups.items()
        ]
        logger.info(f"Grouped {len(records)} records into {len(letters)} letters")
        return letters

    def _build_letter(self, template_type: TemplateType, records: List[RawRecord]) -> LetterUnit:
        first = records[0]

        if template_type == TemplateType.HEALTH:
            policies = self._build_health_policies(first.client_name, records)
        else:
            policies = [self._build_general_policy(record) for record in records]

        letter = LetterUnit(
            id=self.id_factory(),
            source_record_ids=[r.record_id for r in records if r.record_id],
            template_type=template_type,
            reference_number=self.generate_reference_number(),
            date=format_date(self.issue_date()),
            client=ClientInfo(
                name=first.client_name.strip(),
                phone=first.phone or "",
                email=first.email or "",
                address="",
            ),
            policies=policies,
            executive=first.agent_name,
            additional_conditions=CONDITIONS_TEMPLATES[template_type],
        )
        return annotate(letter, initial=True)

    def _policy_entry(self, record: RawRecord, manual_fields: ManualFields,
                      insured_members: Optional[List[str]] = None) -> PolicyEntry:
        expiry = parse_date(record.expiry_date)
        return PolicyEntry(
            policy_number=record.policy_number.strip(),
            company=record.insurer,
            branch=record.coverage_category,
            expiry_date=format_date(expiry) if expiry else "",
            insured_value=record.insured_value,
            premium=record.premium,
            insured_members=insured_members,
            manual_fields=manual_fields,
        )

    def _build_general_policy(self, record: RawRecord) -> PolicyEntry:
        manual_fields = ManualFields(
            premium=record.premium,
            original_premium=record.premium,
            insured_value=record.insured_value,
            original_insured_value=record.insured_value,
            insured_matter=record.insured_matter or "",
            original_insured_matter=record.insured_matter or "",
            deductibles_currency=self.default_currency,
            territoriality_currency=self.default_currency,
        )
        return self._policy_entry(record, manual_fields)

    def _build_health_policies(self, client_name: str, records: List[RawRecord]) -> List[PolicyEntry]:
        by_policy: Dict[str, List[RawRecord]] = {}
        for record in records:
            by_policy.setdefault(record.policy_number.strip(), []).append(record)

        policies = []
        for policy_records in by_policy.values():
            main = select_main_record(client_name, policy_records)
            members = build_insured_members(client_name, policy_records)
            manual_fields = ManualFields(
                premium=main.premium,
                original_premium=main.premium,
                insured_value=main.insured_value,
                original_insured_value=main.insured_value,
                insured_matter=main.insured_matter or "",
                original_insured_matter=main.insured_matter or "",
                insured_members=list(members),
                original_insured_members=list(members),
                deductibles_currency=self.default_currency,
                territoriality_currency=self.default_currency,
            )
            policies.append(self._policy_entry(main, manual_fields, insured_members=members))

        return policies


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def prepare_letters(records: List[RawRecord], engine: Optional[LetterGroupingEngine] = None) -> PreparedLetters:
    """
    Validate, then group, a selection of records.

    Invalid records are left out and reported; they never stop the batch.
    """
    engine = engine or LetterGroupingEngine()
    valid_records: List[RawRecord] = []
    validation_errors: List[str] = []

    for index, record in enumerate(records):
        validation = validate_record_for_letter(record)
        if validation.valid:
            valid_records.append(record)
        else:
            message = f"Registro {index + 1} ({record.client_name}): {', '.join(validation.errors)}"
            logger.warning(f"Skipping invalid record: {message}")
            validation_errors.append(message)

    letters = engine.group(valid_records)
    logger.info(f"Prepared {len(letters)} letters from {len(valid_records)}/{len(records)} valid records")

    return PreparedLetters(
        letters=letters,
        valid_records=len(valid_records),
        total_records=len(records),
        validation_errors=validation_errors,
    )
