"""
Notice Engine - Letter Export

Pairs rendered PDFs with their file names and bundles whole sessions into a
single zip archive. A letter that fails to render is reported in the
GenerationResult and skipped; the rest of the bundle is still produced.
"""
from __future__ import annotations
import io
import logging
import zipfile
from datetime import date
from typing import Callable, Iterable, Optional, Set, Tuple

from ...models.letters import GeneratedLetter, GenerationResult, LetterUnit
from .formatting import generate_bundle_name, generate_file_name
from .rendering import LetterPdfRenderer

logger = logging.getLogger(__name__)


def unique_name(file_name: str, used: Set[str]) -> str:
    """Suffix _2, _3, ... before the extension until the name is unused."""
    if file_name not in used:
        return file_name
    stem, dot, extension = file_name.rpartition(".")
    if not dot:
        stem, extension = file_name, ""
    counter = 2
    while True:
        candidate = f"{stem}_{counter}{dot}{extension}"
        if candidate not in used:
            return candidate
        counter += 1


class LetterExporter:
    """
    Produce downloadable artifacts from letters.

    render: callable turning a LetterUnit into PDF bytes
    today: date used in generated file names (defaults to the current day)
    """

    def __init__(self, render: Optional[Callable[[LetterUnit], bytes]] = None, today: Optional[date] = None):
        self.render = render or LetterPdfRenderer().render
        self.today = today

    def file_name(self, letter: LetterUnit) -> str:
        return generate_file_name(letter.client.name, letter.template_type, self.today)

    def export_single(self, letter: LetterUnit) -> Tuple[str, bytes]:
        return self.file_name(letter), self.render(letter)

    def export_bundle(self, letters: Iterable[LetterUnit]) -> Tuple[str, bytes, GenerationResult]:
        buffer = io.BytesIO()
        generated = []
        errors = []
        used_names: Set[str] = set()

        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for letter in letters:
                try:
                    file_name, document = self.export_single(letter)
                except Exception as e:
                    message = f"Error generando carta para {letter.client.name}: {e}"
                    logger.warning(message)
                    errors.append(message)
                    continue

                file_name = unique_name(file_name, used_names)
                used_names.add(file_name)
                archive.writestr(file_name, document)
                generated.append(GeneratedLetter(
                    letter_id=letter.id,
                    client_name=letter.client.name,
                    template_type=letter.template_type,
                    file_name=file_name,
                    size_bytes=len(document),
                    policy_count=len(letter.policies),
                    needs_review=letter.needs_review,
                    missing_data=list(letter.missing_data),
                ))

        result = GenerationResult(
            success=bool(generated),
            letters=generated,
            errors=errors,
            total_generated=len(generated),
        )
        logger.info(f"Exported bundle with {result.total_generated} letters, {len(errors)} errors")
        return generate_bundle_name(self.today), buffer.getvalue(), result
