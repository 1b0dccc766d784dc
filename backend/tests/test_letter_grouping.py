"""
Letter grouping tests

Verifies:
1. One letter per (trimmed client name, template type), first-seen order
2. General letters get one policy per record with default manual fields
3. Health letters merge members per policy number, policyholder first
4. Letters are annotated right after grouping
5. prepare_letters reports invalid records without stopping the batch
"""
import pytest

from app.models.letters import CurrencyUnit, TemplateType
from app.services.expiry_letters import LetterGroupingEngine, build_insured_members, prepare_letters
from app.services.expiry_letters.completeness import MISSING_REFERENCE
from app.services.expiry_letters.grouping import (
    GENERAL_CONDITIONS_TEMPLATE,
    HEALTH_CONDITIONS_TEMPLATE,
    select_main_record,
)


# =============================================================================
# GROUPING KEY
# =============================================================================

class TestGroupingKey:

    def test_same_client_same_template_share_letter(self, engine, make_record):
        letters = engine.group([
            make_record(client_name="Juan Pérez"),
            make_record(client_name="  Juan Pérez  "),
        ])

        assert len(letters) == 1
        assert len(letters[0].policies) == 2

    def test_different_template_splits_letters(self, engine, make_record):
        letters = engine.group([
            make_record(coverage_category="Automotor"),
            make_record(coverage_category="Salud"),
        ])

        assert [l.template_type for l in letters] == [TemplateType.GENERAL, TemplateType.HEALTH]

    def test_different_client_splits_letters(self, engine, make_record):
        letters = engine.group([
            make_record(client_name="Juan Pérez"),
            make_record(client_name="Juana Pérez"),
        ])

        assert [l.client.name for l in letters] == ["Juan Pérez", "Juana Pérez"]

    def test_first_encounter_order(self, engine, make_record):
        letters = engine.group([
            make_record(client_name="Beto"),
            make_record(client_name="Ana Gómez"),
            make_record(client_name="Beto"),
        ])

        assert [l.client.name for l in letters] == ["Beto", "Ana Gómez"]

    def test_empty_input(self, engine):
        assert engine.group([]) == []


# =============================================================================
# GENERAL LETTERS
# =============================================================================

class TestGeneralLetters:

    def test_three_records_one_missing_insured_value(self, engine, make_record):
        letters = engine.group([
            make_record(policy_number="AUT-001"),
            make_record(policy_number="AUT-002", insured_value=None),
            make_record(policy_number="AUT-003"),
        ])

        assert len(letters) == 1
        letter = letters[0]
        assert len(letter.policies) == 3
        assert letter.needs_review is True

        insured_value_flags = [m for m in letter.missing_data if m.endswith(": Valor Asegurado")]
        assert insured_value_flags == ["Póliza 2 (AUT-002): Valor Asegurado"]

    def test_manual_fields_seeded_from_record(self, engine, make_record):
        letter = engine.group([make_record(premium=980.0, insured_value=30000.0, insured_matter="Casa")])[0]
        manual = letter.policies[0].manual_fields

        assert manual.premium == manual.original_premium == 980.0
        assert manual.insured_value == manual.original_insured_value == 30000.0
        assert manual.insured_matter == manual.original_insured_matter == "Casa"
        assert manual.deductibles is None
        assert manual.territoriality is None
        assert manual.deductibles_currency == CurrencyUnit.BOLIVIANOS
        assert manual.territoriality_currency == CurrencyUnit.BOLIVIANOS
        assert manual.specific_conditions == ""
        assert letter.policies[0].insured_members is None

    def test_default_currency_supplied_at_construction(self, make_record):
        engine = LetterGroupingEngine(default_currency=CurrencyUnit.DOLLARS)
        manual = engine.group([make_record()])[0].policies[0].manual_fields

        assert manual.deductibles_currency == CurrencyUnit.DOLLARS
        assert manual.territoriality_currency == CurrencyUnit.DOLLARS

    def test_general_letter_flagged_even_when_complete(self, engine, make_record):
        letter = engine.group([make_record()])[0]

        assert letter.needs_review is True
        assert letter.additional_conditions == GENERAL_CONDITIONS_TEMPLATE


# =============================================================================
# HEALTH LETTERS
# =============================================================================

class TestHealthLetters:

    def test_policyholder_and_beneficiary_merge(self, engine, make_record):
        letters = engine.group([
            make_record(client_name="Ana Gómez", coverage_category="Salud", policy_number="SAL-1", beneficiary=None),
            make_record(client_name="Ana Gómez", coverage_category="Salud", policy_number="SAL-1",
                        beneficiary="Carlos Gómez"),
        ])

        assert len(letters) == 1
        letter = letters[0]
        assert len(letter.policies) == 1
        policy = letter.policies[0]
        assert policy.insured_members == ["Ana Gómez", "Carlos Gómez"]
        assert policy.manual_fields.insured_members == ["Ana Gómez", "Carlos Gómez"]
        assert policy.manual_fields.original_insured_members == ("Ana Gómez", "Carlos Gómez")
        assert letter.additional_conditions == HEALTH_CONDITIONS_TEMPLATE

    def test_one_entry_per_policy_number(self, engine, make_record):
        letter = engine.group([
            make_record(client_name="Ana Gómez", coverage_category="Vida", policy_number="V-1"),
            make_record(client_name="Ana Gómez", coverage_category="Salud", policy_number="S-1"),
            make_record(client_name="Ana Gómez", coverage_category="Salud", policy_number="V-1",
                        beneficiary="Luis"),
        ])[0]

        assert [p.policy_number for p in letter.policies] == ["V-1", "S-1"]
        assert letter.policies[0].insured_members == ["Ana Gómez", "Luis"]

    def test_main_record_prefers_policyholder_row(self, engine, make_record):
        letter = engine.group([
            make_record(client_name="Ana Gómez", coverage_category="Salud", policy_number="S-1",
                        beneficiary="Carlos Gómez", premium=100.0),
            make_record(client_name="Ana Gómez", coverage_category="Salud", policy_number="S-1",
                        beneficiary="ana gómez", premium=900.0),
        ])[0]

        assert letter.policies[0].manual_fields.premium == 900.0
        assert letter.policies[0].manual_fields.original_premium == 900.0

    def test_main_record_falls_back_to_first(self, make_record):
        records = [
            make_record(client_name="Ana Gómez", beneficiary="Carlos"),
            make_record(client_name="Ana Gómez", beneficiary="Lucía"),
        ]

        assert select_main_record("Ana Gómez", records) is records[0]

    def test_health_letter_needs_renewal_premium(self, engine, make_record):
        letter = engine.group([make_record(coverage_category="Salud", policy_number="S-9")])[0]

        assert letter.needs_review is True
        assert "Póliza 1 (S-9): Prima de renovación anual" in letter.missing_data


# =============================================================================
# MEMBER LIST
# =============================================================================

class TestInsuredMembers:

    def test_policyholder_first_and_no_duplicates(self, make_record):
        records = [
            make_record(beneficiary="Carlos"),
            make_record(beneficiary="CARLOS"),
            make_record(beneficiary="juan pérez"),
            make_record(beneficiary="TITULAR"),
            make_record(beneficiary="titular"),
            make_record(beneficiary="   "),
            make_record(beneficiary=None),
            make_record(beneficiary="Lucía"),
        ]

        members = build_insured_members("Juan Pérez", records)

        assert members == ["Juan Pérez", "Carlos", "Lucía"]

    @pytest.mark.parametrize("beneficiaries", [
        [None],
        ["TITULAR", "Ana"],
        ["ana", "Ana", "ANA"],
        ["Pedro", "pedro ", " PEDRO"],
    ])
    def test_member_list_invariants(self, make_record, beneficiaries):
        records = [make_record(client_name="Ana", beneficiary=b) for b in beneficiaries]

        members = build_insured_members("Ana", records)

        assert members[0].upper() == "ANA"
        assert "TITULAR" not in [m.upper() for m in members]
        assert len({m.upper() for m in members}) == len(members)


# =============================================================================
# LETTER METADATA
# =============================================================================

class TestLetterMetadata:

    def test_reference_number_placeholder(self, engine, make_record):
        letter = engine.group([make_record()])[0]

        assert letter.reference_number == "SCPSA-____/2025"
        assert letter.missing_data[0] == MISSING_REFERENCE

    def test_custom_reference_prefix(self, make_record):
        from datetime import date
        engine = LetterGroupingEngine(reference_prefix="REF-", today=date(2026, 1, 10))

        assert engine.group([make_record()])[0].reference_number == "REF-____/2026"

    def test_client_and_agent_from_first_record(self, engine, make_record):
        letter = engine.group([
            make_record(phone="70000001", email="first@example.com", agent_name="Ejecutivo Uno"),
            make_record(phone="70000002", email="second@example.com", agent_name="Ejecutivo Dos"),
        ])[0]

        assert letter.client.phone == "70000001"
        assert letter.client.email == "first@example.com"
        assert letter.client.address == ""
        assert letter.executive == "Ejecutivo Uno"

    def test_dates_formatted(self, engine, make_record):
        letter = engine.group([make_record(expiry_date="15/06/2025")])[0]

        assert letter.date == "1 de mayo de 2025"
        assert letter.policies[0].expiry_date == "15 de junio de 2025"

    def test_source_record_ids_and_unique_ids(self, engine, make_record):
        letters = engine.group([
            make_record(record_id="r1"),
            make_record(record_id=None),
            make_record(client_name="Otro Cliente", record_id="r3"),
        ])

        assert letters[0].source_record_ids == ["r1"]
        assert letters[1].source_record_ids == ["r3"]
        assert letters[0].id != letters[1].id


# =============================================================================
# PREPARATION
# =============================================================================

class TestPrepareLetters:

    def test_invalid_records_reported_and_skipped(self, engine, make_record):
        records = [
            make_record(),
            make_record(client_name="Pedro Rojas", policy_number="", agent_name=""),
            make_record(client_name="Ana Gómez", coverage_category="Salud"),
        ]

        prepared = prepare_letters(records, engine)

        assert prepared.total_records == 3
        assert prepared.valid_records == 2
        assert len(prepared.letters) == 2
        assert prepared.validation_errors == [
            "Registro 2 (Pedro Rojas): Número de póliza requerido, Ejecutivo responsable requerido"
        ]

    def test_all_invalid(self, engine, make_record):
        prepared = prepare_letters([make_record(insurer="")], engine)

        assert prepared.letters == []
        assert prepared.valid_records == 0
        assert len(prepared.validation_errors) == 1
