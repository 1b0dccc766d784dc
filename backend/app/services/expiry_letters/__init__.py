"""Notice Engine - Expiry Letters

Groups insurance records into expiry-notice letters and keeps their review
state current while an operator edits them.

Usage:
    from app.services.expiry_letters import prepare_letters, LetterSession

    prepared = prepare_letters(records)
    session = LetterSession(prepared.letters)
    session.update_policy_field(letter_id, 0, "renewal_premium", 1250)
"""
from .classifier import HEALTH_KEYWORDS, determine_template_type
from .completeness import detect_missing_data, evaluate_completeness, annotate
from .export import LetterExporter
from .formatting import (
    format_currency,
    format_usd,
    format_date,
    format_date_short,
    parse_date,
    sanitize_client_name,
    generate_file_name,
    generate_bundle_name,
)
from .grouping import LetterGroupingEngine, prepare_letters, build_insured_members
from .messaging import clean_phone_number, compose_notice_message, build_whatsapp_link
from .rendering import LetterPdfRenderer, render_letter
from .session import LetterSession
from .validator import validate_record_for_letter

__all__ = [
    # Classification / validation
    "HEALTH_KEYWORDS",
    "determine_template_type",
    "validate_record_for_letter",
    # Grouping
    "LetterGroupingEngine",
    "prepare_letters",
    "build_insured_members",
    # Completeness
    "detect_missing_data",
    "evaluate_completeness",
    "annotate",
    # Mutation API
    "LetterSession",
    # Formatting
    "format_currency",
    "format_usd",
    "format_date",
    "format_date_short",
    "parse_date",
    "sanitize_client_name",
    "generate_file_name",
    "generate_bundle_name",
    # Collaborators
    "LetterPdfRenderer",
    "render_letter",
    "LetterExporter",
    "clean_phone_number",
    "compose_notice_message",
    "build_whatsapp_link",
]
