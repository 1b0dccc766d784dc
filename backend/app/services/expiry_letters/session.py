"""
Notice Engine - Letter Session (Mutation API)

Holds the letters of one review session and applies operator edits.

Post-condition of every mutation: the stored letter has been re-annotated
by the Completeness Engine. Original ManualFields snapshots survive every
edit unchanged.

Error model:
- Unknown letter id → no-op, returns None (stale reference, not an error)
- Policy index out of range → IndexError, letter untouched
- Unknown or non-editable field → ValueError, letter untouched
"""
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Union

from ...models.letters import (
    ClientField,
    ClientInfo,
    LetterStats,
    LetterUnit,
    ManualField,
    PolicyEntry,
    TemplateType,
)
from .completeness import annotate

logger = logging.getLogger(__name__)

# Top-level LetterUnit fields an update may replace. Identity, template and
# derived review state are never caller-supplied.
UPDATABLE_FIELDS = {
    "reference_number",
    "date",
    "client",
    "policies",
    "executive",
    "additional_conditions",
}

# Plain-text top-level fields; None is not a value for any of them.
TEXT_FIELDS = {"reference_number", "date", "executive", "additional_conditions"}


class LetterSession:
    """Ordered, in-memory set of letters under review."""

    def __init__(self, letters: Optional[Iterable[LetterUnit]] = None):
        self._letters: Dict[str, LetterUnit] = {}
        for letter in letters or []:
            self._letters[letter.id] = letter

    @property
    def letters(self) -> List[LetterUnit]:
        return list(self._letters.values())

    def get(self, unit_id: str) -> Optional[LetterUnit]:
        return self._letters.get(unit_id)

    def stats(self) -> LetterStats:
        letters = self.letters
        return LetterStats(
            total_letters=len(letters),
            health_count=sum(1 for l in letters if l.template_type == TemplateType.HEALTH),
            general_count=sum(1 for l in letters if l.template_type == TemplateType.GENERAL),
            need_review_count=sum(1 for l in letters if l.needs_review),
            total_policies=sum(len(l.policies) for l in letters),
        )

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def update_unit(self, unit_id: str, updates: Dict[str, Any]) -> Optional[LetterUnit]:
        """
        Replace top-level fields of a letter and re-annotate it.

        "client" may be a ClientInfo or a dict of client sub-fields to merge.
        "policies" may be reordered or trimmed. Originals are carried over from
        the stored entry with the same policy number whatever the caller sends;
        a policy number the letter does not hold raises ValueError.
        """
        letter = self._letters.get(unit_id)
        if letter is None:
            logger.debug(f"update_unit: letter {unit_id} not found, ignoring")
            return None

        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        for key in TEXT_FIELDS.intersection(updates):
            if not isinstance(updates[key], str):
                raise ValueError(f"'{key}' must be text, got {updates[key]!r}")

        changes = dict(updates)
        if "client" in changes:
            changes["client"] = self._merge_client(letter.client, changes["client"])
        if "policies" in changes:
            changes["policies"] = self._keep_originals(letter.policies, changes["policies"])

        updated = annotate(replace(letter, **changes))
        self._letters[unit_id] = updated
        return updated

    def update_policy_field(
        self,
        unit_id: str,
        policy_index: int,
        field_name: Union[str, ManualField],
        value: Any,
    ) -> Optional[LetterUnit]:
        """Edit one ManualFields slot of one policy."""
        letter = self._letters.get(unit_id)
        if letter is None:
            logger.debug(f"update_policy_field: letter {unit_id} not found, ignoring")
            return None

        if not 0 <= policy_index < len(letter.policies):
            raise IndexError(
                f"Policy index {policy_index} out of range for letter {unit_id} "
                f"({len(letter.policies)} policies)"
            )

        policy = letter.policies[policy_index]
        policies = list(letter.policies)
        policies[policy_index] = replace(policy, manual_fields=policy.manual_fields.with_value(field_name, value))
        return self.update_unit(unit_id, {"policies": policies})

    def update_client_field(
        self,
        unit_id: str,
        field_name: Union[str, ClientField],
        value: str,
    ) -> Optional[LetterUnit]:
        """Edit the client's phone or email."""
        try:
            client_field = ClientField(field_name)
        except ValueError:
            raise ValueError(f"'{field_name}' is not an editable client field")
        return self.update_unit(unit_id, {"client": {client_field.value: value or ""}})

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _merge_client(self, current: ClientInfo, update: Union[ClientInfo, Dict[str, Any]]) -> ClientInfo:
        if isinstance(update, ClientInfo):
            return replace(update)
        allowed = {"name", "phone", "email", "address"}
        unknown = set(update) - allowed
        if unknown:
            raise ValueError(f"Unknown client fields: {', '.join(sorted(unknown))}")
        return replace(current, **{k: ("" if v is None else str(v)) for k, v in update.items()})

    def _keep_originals(self, current: List[PolicyEntry], new_policies: List[PolicyEntry]) -> List[PolicyEntry]:
        stored: Dict[str, List[PolicyEntry]] = {}
        for policy in current:
            stored.setdefault(policy.policy_number, []).append(policy)

        seen: Dict[str, int] = {}
        kept = []
        for new in new_policies:
            matches = stored.get(new.policy_number)
            if not matches:
                raise ValueError(f"Policy {new.policy_number} is not part of this letter")
            # repeated numbers pair up in stored order
            index = min(seen.get(new.policy_number, 0), len(matches) - 1)
            seen[new.policy_number] = index + 1
            old = matches[index]
            kept.append(replace(new, manual_fields=new.manual_fields.with_originals_of(old.manual_fields)))
        return kept

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_list(self) -> List[Dict[str, Any]]:
        return [letter.to_dict() for letter in self.letters]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> "LetterSession":
        return cls(LetterUnit.from_dict(item) for item in data or [])
