"""
Notice Engine - PDF Rendering

Turns a fully formed LetterUnit into a PDF document. The layout is plain on
purpose: header, client block, one block per policy, conditions, signature.
Gaps are printed as "No especificado" rather than left blank.
"""
from __future__ import annotations
import logging
from typing import List

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from ...models.letters import CurrencyUnit, LetterUnit, PolicyEntry, TemplateType
from .formatting import NOT_SPECIFIED, format_currency, format_usd

logger = logging.getLogger(__name__)

TITLES = {
    TemplateType.HEALTH: "AVISO DE VENCIMIENTO - SEGURO DE SALUD",
    TemplateType.GENERAL: "AVISO DE VENCIMIENTO DE PÓLIZAS",
}


def _latin1(text: str) -> str:
    # Core PDF fonts only cover Latin-1
    return (text or "").encode("latin-1", "replace").decode("latin-1")


def _amount(amount, currency: CurrencyUnit) -> str:
    if currency == CurrencyUnit.DOLLARS:
        return format_usd(amount)
    return format_currency(amount)


class NoticePDF(FPDF):
    """Letter-size document with a page counter footer."""

    def footer(self):
        self.set_y(-15)
        self.set_font("helvetica", "I", 8)
        self.set_text_color(107, 114, 128)
        self.cell(0, 10, f"Página {self.page_no()}/{{nb}}", align="C")


class LetterPdfRenderer:
    """
    Render LetterUnits to PDF bytes.

    Input: LetterUnit (read as a snapshot, never modified)
    Output: PDF document bytes
    """

    def __init__(self, font: str = "helvetica", body_size: int = 10):
        self.font = font
        self.body_size = body_size

    def render(self, letter: LetterUnit) -> bytes:
        pdf = NoticePDF(format="letter")
        pdf.set_margins(20, 20, 20)
        pdf.set_auto_page_break(auto=True, margin=20)
        pdf.add_page()

        self._header(pdf, letter)
        self._client_block(pdf, letter)
        self._write(pdf, self._opening(letter))

        for index, policy in enumerate(letter.policies):
            self._policy_block(pdf, letter.template_type, index, policy)

        self._title(pdf, "CONDICIONES")
        self._write(pdf, letter.additional_conditions.replace("*", ""))
        self._signature(pdf, letter)

        data = bytes(pdf.output())
        logger.debug(f"Rendered letter {letter.id} ({len(data)} bytes)")
        return data

    def _write(self, pdf: FPDF, text: str, style: str = "", size: int = None):
        pdf.set_font(self.font, style, size or self.body_size)
        pdf.multi_cell(0, 5, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(2)

    def _title(self, pdf: FPDF, text: str):
        pdf.set_text_color(23, 37, 84)
        self._write(pdf, text, style="B", size=self.body_size + 2)
        pdf.set_text_color(31, 41, 55)

    def _header(self, pdf: FPDF, letter: LetterUnit):
        self._write(pdf, f"La Paz, {letter.date}")
        self._write(pdf, f"Ref.: {letter.reference_number}", style="B")
        self._title(pdf, TITLES[letter.template_type])

    def _client_block(self, pdf: FPDF, letter: LetterUnit):
        lines = ["Señor(a):", letter.client.name]
        if letter.client.address:
            lines.append(letter.client.address)
        if letter.client.phone:
            lines.append(f"Teléfono: {letter.client.phone}")
        if letter.client.email:
            lines.append(f"Correo: {letter.client.email}")
        self._write(pdf, "\n".join(lines))

    def _opening(self, letter: LetterUnit) -> str:
        count = len(letter.policies)
        noun = "la póliza" if count == 1 else f"las {count} pólizas"
        return (
            f"De nuestra consideración:\n\nMediante la presente le recordamos que {noun} "
            f"detallada(s) a continuación se encuentra(n) próxima(s) a vencer. Le solicitamos "
            f"comunicarse con nosotros para coordinar su renovación."
        )

    def _policy_block(self, pdf: FPDF, template_type: TemplateType, index: int, policy: PolicyEntry):
        manual = policy.manual_fields
        lines: List[str] = [
            f"Compañía: {policy.company}",
            f"Ramo: {policy.branch}",
            f"Vencimiento: {policy.expiry_date or NOT_SPECIFIED}",
            f"Valor asegurado: {format_usd(manual.insured_value)}",
            f"Prima: {format_currency(manual.premium)}",
        ]

        if template_type == TemplateType.HEALTH:
            lines.append(f"Prima de renovación anual: {format_usd(manual.renewal_premium)}")
            members = manual.insured_members or policy.insured_members or []
            if members:
                lines.append("Asegurados:")
                lines.extend(f"  - {member}" for member in members)
        else:
            lines.extend([
                f"Materia asegurada: {manual.insured_matter or NOT_SPECIFIED}",
                f"Deducibles: {_amount(manual.deductibles, manual.deductibles_currency)}",
                f"Extraterritorialidad: {_amount(manual.territoriality, manual.territoriality_currency)}",
                f"Condiciones específicas: {manual.specific_conditions or NOT_SPECIFIED}",
            ])

        self._write(pdf, f"Póliza {index + 1}: N° {policy.policy_number}", style="B")
        self._write(pdf, "\n".join(lines))

    def _signature(self, pdf: FPDF, letter: LetterUnit):
        pdf.ln(6)
        self._write(pdf, "Atentamente,")
        pdf.ln(10)
        self._write(pdf, letter.executive or NOT_SPECIFIED, style="B")
        self._write(pdf, "Ejecutivo de cuentas")


def render_letter(letter: LetterUnit) -> bytes:
    """Factory function to render one letter with default settings."""
    return LetterPdfRenderer().render(letter)
