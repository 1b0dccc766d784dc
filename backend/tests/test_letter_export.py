"""
Export, rendering and messaging handoff tests

Verifies:
1. Rendered letters are PDF documents
2. Single export pairs the sanitized file name with the document
3. Bundles contain one entry per letter and report per-letter failures
4. Phone cleaning and message composition for the messaging handoff
"""
import io
import zipfile
from datetime import date
from urllib.parse import unquote

import pytest

from app.models.letters import TemplateType
from app.services.expiry_letters import (
    LetterExporter,
    LetterPdfRenderer,
    build_whatsapp_link,
    clean_phone_number,
    compose_notice_message,
    prepare_letters,
    render_letter,
)
from app.services.expiry_letters.export import unique_name

EXPORT_DATE = date(2025, 5, 1)


@pytest.fixture
def letters(engine, make_record):
    return prepare_letters([
        make_record(client_name="María José Núñez-Ortiz", policy_number="AUT-001"),
        make_record(client_name="Ana Gómez", coverage_category="Salud", policy_number="SAL-1",
                    beneficiary="Carlos Gómez"),
    ], engine).letters


def fake_render(letter):
    return f"%PDF-fake {letter.id}".encode()


# =============================================================================
# RENDERING
# =============================================================================

class TestRendering:

    def test_renders_pdf_for_both_templates(self, letters):
        renderer = LetterPdfRenderer()

        for letter in letters:
            document = renderer.render(letter)
            assert document.startswith(b"%PDF")

    def test_factory_function(self, letters):
        assert render_letter(letters[1]).startswith(b"%PDF")

    def test_render_does_not_modify_letter(self, letters):
        before = letters[0].to_dict()

        LetterPdfRenderer().render(letters[0])

        assert letters[0].to_dict() == before

    def test_renders_non_latin_names(self, engine, make_record):
        letter = prepare_letters([make_record(client_name="Łukasz Żółć")], engine).letters[0]

        assert LetterPdfRenderer().render(letter).startswith(b"%PDF")


# =============================================================================
# EXPORT
# =============================================================================

class TestLetterExporter:

    def test_export_single(self, letters):
        exporter = LetterExporter(render=fake_render, today=EXPORT_DATE)

        file_name, document = exporter.export_single(letters[0])

        assert file_name == "20250501-AVISO_VCMTO_MARÍA_JOSÉ_NÚÑEZORTIZ.pdf"
        assert document == f"%PDF-fake {letters[0].id}".encode()

    def test_export_bundle(self, letters):
        exporter = LetterExporter(render=fake_render, today=EXPORT_DATE)

        bundle_name, bundle, result = exporter.export_bundle(letters)

        assert bundle_name == "Cartas_Vencimiento_2025-05-01.zip"
        with zipfile.ZipFile(io.BytesIO(bundle)) as archive:
            assert archive.namelist() == [
                "20250501-AVISO_VCMTO_MARÍA_JOSÉ_NÚÑEZORTIZ.pdf",
                "20250501-AVISO_SALUD_ANA_GÓMEZ.pdf",
            ]
        assert result.success is True
        assert result.total_generated == 2
        assert result.errors == []
        assert result.letters[1].template_type == TemplateType.HEALTH
        assert result.letters[1].policy_count == 1
        assert result.letters[0].needs_review is True

    def test_failed_letter_is_reported_and_skipped(self, letters):
        def flaky_render(letter):
            if letter.template_type == TemplateType.HEALTH:
                raise RuntimeError("boom")
            return b"%PDF-ok"

        exporter = LetterExporter(render=flaky_render, today=EXPORT_DATE)
        _, bundle, result = exporter.export_bundle(letters)

        with zipfile.ZipFile(io.BytesIO(bundle)) as archive:
            assert len(archive.namelist()) == 1
        assert result.success is True
        assert result.total_generated == 1
        assert result.errors == ["Error generando carta para Ana Gómez: boom"]

    def test_colliding_names_get_suffixes(self, engine, make_record):
        letters = prepare_letters([
            make_record(client_name="Juan Pérez", policy_number="AUT-001"),
            make_record(client_name="JUAN PÉREZ", policy_number="AUT-002"),
            make_record(client_name="juan pérez", policy_number="AUT-003"),
        ], engine).letters
        assert len(letters) == 3

        _, bundle, result = LetterExporter(render=fake_render, today=EXPORT_DATE).export_bundle(letters)

        expected = [
            "20250501-AVISO_VCMTO_JUAN_PÉREZ.pdf",
            "20250501-AVISO_VCMTO_JUAN_PÉREZ_2.pdf",
            "20250501-AVISO_VCMTO_JUAN_PÉREZ_3.pdf",
        ]
        with zipfile.ZipFile(io.BytesIO(bundle)) as archive:
            assert archive.namelist() == expected
        assert [generated.file_name for generated in result.letters] == expected
        assert result.total_generated == 3

    def test_unique_name_skips_taken_suffixes(self):
        used = {"A.pdf", "A_2.pdf"}

        assert unique_name("B.pdf", used) == "B.pdf"
        assert unique_name("A.pdf", used) == "A_3.pdf"

    def test_empty_bundle_is_not_success(self):
        _, _, result = LetterExporter(render=fake_render, today=EXPORT_DATE).export_bundle([])

        assert result.success is False
        assert result.total_generated == 0


# =============================================================================
# MESSAGING HANDOFF
# =============================================================================

class TestMessagingHandoff:

    @pytest.mark.parametrize("raw,expected", [
        ("71234567", "59171234567"),
        ("7123-4567", "59171234567"),
        ("+591 71234567", "59171234567"),
        ("7001234 / 7005678", "7001234"),
        ("", None),
        (None, None),
        ("sin teléfono", None),
    ])
    def test_clean_phone_number(self, raw, expected):
        assert clean_phone_number(raw) == expected

    def test_custom_country_code(self):
        assert clean_phone_number("71234567", country_code="51") == "5171234567"

    def test_message_lists_policies(self, letters):
        message = compose_notice_message(letters[0])

        assert message.startswith("Estimado(a) María José Núñez-Ortiz,")
        assert "- Póliza AUT-001 (Seguros Illimani, Automotor): vence el 15 de junio de 2025" in message
        assert message.endswith("María Salazar")

    def test_whatsapp_link(self, letters):
        link = build_whatsapp_link(letters[0])

        assert link.startswith("https://wa.me/59171234567?text=")
        assert unquote(link.split("text=", 1)[1]) == compose_notice_message(letters[0])

    def test_whatsapp_link_without_phone(self, engine, make_record):
        letter = prepare_letters([make_record(phone="")], engine).letters[0]

        assert build_whatsapp_link(letter) is None
