"""
Notice Engine - Messaging Handoff

Prepares what a messaging app needs to notify a client: a dialable phone
number and a pre-composed text. Opening the link is left to the caller.
"""
from __future__ import annotations
import re
from typing import Optional
from urllib.parse import quote

from ...models.letters import LetterUnit

DEFAULT_COUNTRY_CODE = "591"
LOCAL_NUMBER_LENGTH = 8
WHATSAPP_URL = "https://wa.me/{phone}?text={text}"

_NON_DIGITS = re.compile(r"\D")


def clean_phone_number(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """
    Digits only, with the country code added to local numbers.

    Multiple numbers in one field ("7001234 / 7005678") keep the first one.
    Returns None when nothing dialable is left.
    """
    if not phone:
        return None
    first = re.split(r"[/,;]", phone)[0]
    digits = _NON_DIGITS.sub("", first)
    if not digits:
        return None
    if len(digits) == LOCAL_NUMBER_LENGTH:
        digits = f"{country_code}{digits}"
    return digits


def compose_notice_message(letter: LetterUnit) -> str:
    lines = [
        f"Estimado(a) {letter.client.name},",
        "",
        "Le recordamos que las siguientes pólizas están próximas a vencer:",
    ]
    for policy in letter.policies:
        lines.append(
            f"- Póliza {policy.policy_number} ({policy.company}, {policy.branch}): vence el {policy.expiry_date}"
        )
    lines.extend([
        "",
        "Quedamos atentos a sus instrucciones para la renovación.",
        letter.executive,
    ])
    return "\n".join(lines)


def build_whatsapp_link(letter: LetterUnit, country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    phone = clean_phone_number(letter.client.phone, country_code)
    if phone is None:
        return None
    return WHATSAPP_URL.format(phone=phone, text=quote(compose_notice_message(letter)))
