"""
Duplicate detection over a candidate batch.

Pipeline:
    1. Pairwise scan (O(n^2)); first-seen record anchors its cluster
    2. Title pass: exact (normalized equality) or fuzzy (similarity >= threshold)
    3. Content pass, independent of the title pass: semantic (similarity >= 0.90)
    4. Group matches by the anchor's title key, propose non-anchors for removal

Quadratic in batch size. Fine for a few hundred records per sync; larger
batches need blocking (e.g. by source or date) before this runs.
"""

from collections.abc import Sequence

from regqual.config.settings import settings
from regqual.quality.models import (
    CandidateRecord,
    DuplicateGroup,
    DuplicateMatch,
    DuplicateReport,
    MatchType,
)
from regqual.quality.similarity import normalize_text, similarity, title_key
from regqual.logger import get_logger

logger = get_logger(__name__)


def find_duplicates(
    records: Sequence[CandidateRecord],
    threshold: float | None = None,
    semantic_threshold: float | None = None,
) -> list[DuplicateMatch]:
    """Return matches for every cluster found, each cluster led by its anchor's self-entry."""
    threshold = settings.duplicate_threshold if threshold is None else threshold
    semantic_threshold = (
        settings.semantic_threshold if semantic_threshold is None else semantic_threshold
    )

    duplicates: list[DuplicateMatch] = []
    processed: set[int] = set()
    titles = [normalize_text(r.title) for r in records]
    comparisons = 0

    for i, current in enumerate(records):
        if i in processed:
            continue

        matches: list[DuplicateMatch] = []
        matched_indexes: list[int] = []

        for j in range(i + 1, len(records)):
            if j in processed:
                continue
            candidate = records[j]
            comparisons += 1
            hit = False

            # Empty titles carry no signal; such records only match on content.
            if titles[i] and titles[j]:
                if titles[i] == titles[j]:
                    matches.append(_match(current, candidate, 1.0, MatchType.EXACT))
                    hit = True
                else:
                    score = similarity(current.title, candidate.title)
                    if score >= threshold:
                        matches.append(_match(current, candidate, score, MatchType.FUZZY))
                        hit = True

            if current.content and candidate.content:
                content_score = similarity(current.content, candidate.content)
                if content_score >= semantic_threshold:
                    matches.append(
                        _match(current, candidate, content_score, MatchType.SEMANTIC)
                    )
                    hit = True

            if hit:
                matched_indexes.append(j)

        if matches:
            duplicates.append(_match(current, current, 1.0, MatchType.EXACT))
            duplicates.extend(matches)
            processed.add(i)
            processed.update(matched_indexes)

    logger.debug(
        "duplicate_scan_done",
        records=len(records),
        comparisons=comparisons,
        threshold=threshold,
    )
    logger.info("duplicates_found", records=len(records), matches=len(duplicates))
    return duplicates


def _match(
    lead: CandidateRecord,
    other: CandidateRecord,
    score: float,
    match_type: MatchType,
) -> DuplicateMatch:
    return DuplicateMatch(
        record_id=lead.id,
        matched_id=other.id,
        title=other.title,
        similarity=score,
        match_type=match_type,
    )


def group_duplicates(
    matches: Sequence[DuplicateMatch],
    floor: float | None = None,
) -> list[DuplicateGroup]:
    """
    Partition matches by the lead record's title key.

    Members are distinct record ids (a record matched on both title and
    content counts once). Non-anchor matches below `floor` are not admitted.
    Groups with a single distinct record are dropped.

    Unrelated records whose titles share the same first 50 normalized
    characters land in one group. A lead whose title normalizes to empty is
    keyed by its own id instead.
    """
    floor = settings.group_similarity_floor if floor is None else floor

    lead_keys: dict[str, str] = {}
    for m in matches:
        if m.record_id == m.matched_id:
            # Titles that normalize to nothing carry no grouping signal.
            lead_keys.setdefault(m.record_id, title_key(m.title) or f"#{m.record_id}")

    buckets: dict[str, dict] = {}
    for m in matches:
        key = lead_keys.get(m.record_id)
        if key is None:
            key = title_key(m.title) or f"#{m.record_id}"
        bucket = buckets.setdefault(
            key, {"anchor": m.record_id, "ids": [], "matches": []}
        )

        if m.matched_id != bucket["anchor"] and m.similarity < floor:
            continue
        bucket["matches"].append(m)
        for record_id in (m.record_id, m.matched_id):
            if record_id not in bucket["ids"]:
                bucket["ids"].append(record_id)

    groups: list[DuplicateGroup] = []
    for key, bucket in buckets.items():
        anchor = bucket["anchor"]
        if anchor in bucket["ids"]:
            bucket["ids"].remove(anchor)
        record_ids = [anchor] + bucket["ids"]
        if len(record_ids) < 2:
            continue

        member_scores = [
            m.similarity for m in bucket["matches"] if m.matched_id != anchor
        ]
        groups.append(
            DuplicateGroup(
                key=key,
                anchor_id=anchor,
                record_ids=record_ids,
                matches=bucket["matches"],
                confidence=min(member_scores) if member_scores else 1.0,
            )
        )

    return groups


def select_removal_candidates(groups: Sequence[DuplicateGroup]) -> list[str]:
    """Keep each group's anchor, propose the rest. Nothing is deleted here."""
    candidates: list[str] = []
    seen: set[str] = set()
    for group in groups:
        for record_id in group.record_ids[1:]:
            if record_id not in seen:
                seen.add(record_id)
                candidates.append(record_id)
    return candidates


class DuplicateDetector:
    def __init__(
        self,
        threshold: float | None = None,
        semantic_threshold: float | None = None,
        group_floor: float | None = None,
    ):
        self.threshold = settings.duplicate_threshold if threshold is None else threshold
        self.semantic_threshold = (
            settings.semantic_threshold if semantic_threshold is None else semantic_threshold
        )
        self.group_floor = (
            settings.group_similarity_floor if group_floor is None else group_floor
        )

    def find(self, records: Sequence[CandidateRecord]) -> list[DuplicateMatch]:
        return find_duplicates(records, self.threshold, self.semantic_threshold)

    def group(self, matches: Sequence[DuplicateMatch]) -> list[DuplicateGroup]:
        return group_duplicates(matches, self.group_floor)

    def report(self, records: Sequence[CandidateRecord]) -> DuplicateReport:
        """Detect, group and propose removals in one pass."""
        groups = self.group(self.find(records))
        candidates = select_removal_candidates(groups)

        logger.info(
            "duplicate_report",
            records=len(records),
            groups=len(groups),
            removal_candidates=len(candidates),
        )
        return DuplicateReport(
            total_records=len(records),
            removal_candidate_count=len(candidates),
            duplicate_groups=groups,
            removal_candidates=candidates,
        )
