from __future__ import annotations

import logging
from typing import Any

from ..db.store import EntityStore
from ..models.config_models import MatchingConfig
from ..models.resolution import ReferenceKind, Resolution, ResolutionMode, ResolutionStatus
from ..models.snapshot import Snapshot, normalize_key
from .similarity import similarity

"""Reference resolution (category / location / vendor).

Resolution order for a non-blank name:
1. exact case-insensitive match against the phase snapshot
2. vendors only: fuzzy match (similarity >= threshold, best first, ties in
   snapshot order, top ``max_fuzzy_candidates`` kept)
3. miss: WILL_CREATE / CREATED when auto-create is on, NOT_FOUND otherwise

Preview mode never touches the store. Commit mode creates missing entities,
appends them to the snapshot and serializes creation per (kind, name key) so
a name referenced by several rows is created once. Vendors are serialized
per kind: a vendor created by one row must be visible to the fuzzy re-check
of every later row.

Categories and locations are matched exactly only: they are short,
organizer-authored lists where a fuzzy hit would silently merge distinct
entries.
"""

__all__ = [
    "FuzzyCandidate",
    "find_fuzzy_candidates",
    "EntityResolver",
]

logger = logging.getLogger(__name__)

FUZZY_KINDS = {ReferenceKind.VENDOR}

FuzzyCandidate = tuple[dict[str, Any], float]


def find_fuzzy_candidates(
    name: str,
    entities: list[dict[str, Any]],
    matching: MatchingConfig,
) -> list[FuzzyCandidate]:
    """Entities whose normalized name scores >= threshold, best first.

    sorted() is stable, so equal scores keep snapshot order.
    """
    key = normalize_key(name)
    scored = []
    for entity in entities:
        score = similarity(key, normalize_key(entity.get("name")))
        if score >= matching.fuzzy_threshold:
            scored.append((entity, score))
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[: matching.max_fuzzy_candidates]


class EntityResolver:
    """Resolves reference names against one phase snapshot.

    One resolver instance is bound to one snapshot; the orchestrator creates a
    new resolver per phase.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        store: EntityStore | None = None,
        matching: MatchingConfig | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.store = store
        self.matching = matching or MatchingConfig()

    def resolve(
        self,
        kind: ReferenceKind,
        raw_name: str | None,
        mode: ResolutionMode,
        auto_create: bool,
    ) -> Resolution:
        name = (raw_name or "").strip()
        if not name:
            return Resolution(kind=kind, status=ResolutionStatus.NO_REFERENCE, raw_name=raw_name)

        found = self._match_existing(kind, raw_name, name, mode)
        if found is not None:
            return found

        if not auto_create:
            return Resolution(kind=kind, status=ResolutionStatus.NOT_FOUND, raw_name=raw_name, name=name)

        if mode is ResolutionMode.PREVIEW:
            return Resolution(kind=kind, status=ResolutionStatus.WILL_CREATE, raw_name=raw_name, name=name)

        return self._create(kind, raw_name, name)

    def _match_existing(
        self,
        kind: ReferenceKind,
        raw_name: str | None,
        name: str,
        mode: ResolutionMode,
    ) -> Resolution | None:
        exact = self.snapshot.find_exact(kind, name)
        if exact is not None:
            return Resolution(
                kind=kind,
                status=ResolutionStatus.FOUND,
                raw_name=raw_name,
                name=name,
                entity_id=exact.get("id"),
                matched_name=exact.get("name"),
            )
        if kind not in FUZZY_KINDS:
            return None

        candidates = find_fuzzy_candidates(name, self.snapshot.list_entities(kind), self.matching)
        if not candidates:
            return None
        best, score = candidates[0]
        status = (
            ResolutionStatus.WILL_FUZZY_MATCH
            if mode is ResolutionMode.PREVIEW
            else ResolutionStatus.FUZZY_MATCHED
        )
        return Resolution(
            kind=kind,
            status=status,
            raw_name=raw_name,
            name=name,
            entity_id=best.get("id"),
            matched_name=best.get("name"),
            similarity=score,
            candidates=tuple(str(e.get("name")) for e, _ in candidates),
        )

    def _create(self, kind: ReferenceKind, raw_name: str | None, name: str) -> Resolution:
        if self.store is None:
            raise RuntimeError("commit-mode resolution requires a store")

        # 同一 (kind, name) の自動作成は 1 回だけ: ロック取得後にスナップショットを再確認
        # fuzzy 対象の種類は名前が違っても合流しうるので種類単位でロック
        lock_key = "*" if kind in FUZZY_KINDS else normalize_key(name)
        with self.snapshot.key_lock(kind.value, lock_key):
            again = self._match_existing(kind, raw_name, name, ResolutionMode.COMMIT)
            if again is not None:
                return again
            try:
                entity = self.store.create(kind.value, {"name": name})
            except Exception as e:
                logger.error("auto-create failed kind=%s name=%r: %s", kind.value, name, e)
                return Resolution(
                    kind=kind,
                    status=ResolutionStatus.CREATION_FAILED,
                    raw_name=raw_name,
                    name=name,
                    error=str(e),
                )
            self.snapshot.add_entity(kind, entity)

        logger.info("created %s %r id=%s", kind.value, name, entity.get("id"))
        return Resolution(
            kind=kind,
            status=ResolutionStatus.CREATED,
            raw_name=raw_name,
            name=name,
            entity_id=entity.get("id"),
            matched_name=entity.get("name"),
        )
