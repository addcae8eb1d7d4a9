from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Reference resolution outcome models.

Each reference field of a row (category / location / vendor) resolves to
exactly one Resolution. Preview-mode statuses (WILL_*) never carry an id
that does not exist yet; commit-mode statuses carry the store id.
"""

__all__ = [
    "ReferenceKind",
    "ResolutionMode",
    "ResolutionStatus",
    "Resolution",
    "REFERENCE_KINDS",
]


class ReferenceKind(Enum):
    CATEGORY = "category"
    LOCATION = "location"
    VENDOR = "vendor"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def id_field(self) -> str:
        """Asset payload field holding the reference id."""
        return f"{self.value}Id"


# 行内の解決順序 (警告の並び順もこれに従う)
REFERENCE_KINDS: tuple[ReferenceKind, ...] = (
    ReferenceKind.CATEGORY,
    ReferenceKind.LOCATION,
    ReferenceKind.VENDOR,
)


class ResolutionMode(Enum):
    PREVIEW = "preview"
    COMMIT = "commit"


class ResolutionStatus(Enum):
    """Resolution lifecycle.

    - NO_REFERENCE: the row left the field blank
    - FOUND: exact (case-insensitive) match
    - WILL_FUZZY_MATCH / FUZZY_MATCHED: similarity match (preview / commit)
    - WILL_CREATE / CREATED: missing entity, auto-create enabled (preview / commit)
    - NOT_FOUND: missing entity, auto-create disabled
    - CREATION_FAILED: the store rejected the create call
    """
    NO_REFERENCE = "no_reference"
    FOUND = "found"
    WILL_FUZZY_MATCH = "will_fuzzy_match"
    FUZZY_MATCHED = "fuzzy_matched"
    WILL_CREATE = "will_create"
    CREATED = "created"
    NOT_FOUND = "not_found"
    CREATION_FAILED = "creation_failed"


_FAILURES = {ResolutionStatus.NOT_FOUND, ResolutionStatus.CREATION_FAILED}
_FUZZY = {ResolutionStatus.WILL_FUZZY_MATCH, ResolutionStatus.FUZZY_MATCHED}
_NEW = {ResolutionStatus.WILL_CREATE, ResolutionStatus.CREATED}


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one (kind, raw name) reference."""
    kind: ReferenceKind
    status: ResolutionStatus
    raw_name: str | None = None
    name: str | None = None  # trimmed input, display/creation casing
    entity_id: Any = None
    matched_name: str | None = None  # fuzzy target name
    similarity: float | None = None
    candidates: tuple[str, ...] = ()  # fuzzy candidate names, best first
    error: str | None = None  # store error text for CREATION_FAILED

    @property
    def is_failure(self) -> bool:
        return self.status in _FAILURES

    @property
    def is_fuzzy(self) -> bool:
        return self.status in _FUZZY

    @property
    def is_new(self) -> bool:
        return self.status in _NEW

    @property
    def target_key(self) -> tuple[Any, ...] | None:
        """Identity of the chosen target, comparable across preview and commit.

        Existing targets compare by id. New entities compare by normalized
        name because the preview phase has no id for them yet.
        """
        if self.status in (ResolutionStatus.FOUND, *_FUZZY):
            return ("existing", self.kind.value, self.entity_id)
        if self.is_new:
            return ("new", self.kind.value, (self.name or "").lower())
        return None

    def error_message(self) -> str | None:
        if self.status is ResolutionStatus.NOT_FOUND:
            return f"{self.kind.label} '{self.raw_name}' not found."
        if self.status is ResolutionStatus.CREATION_FAILED:
            return f"Failed to create {self.kind.value} '{self.raw_name}'."
        return None

    def warning_message(self) -> str | None:
        if self.is_fuzzy:
            return f"{self.kind.label} '{self.raw_name}' will match existing '{self.matched_name}'."
        if self.status is ResolutionStatus.WILL_CREATE:
            return f"{self.kind.label} will create: {self.name}"
        return None
