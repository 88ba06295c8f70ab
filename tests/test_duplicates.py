"""Tests for duplicate detection, grouping and removal-candidate selection."""

from regqual.quality.duplicates import (
    DuplicateDetector,
    find_duplicates,
    group_duplicates,
    select_removal_candidates,
)
from regqual.quality.models import CandidateRecord, DuplicateMatch, MatchType

LONG_CONTENT = (
    "Manufacturers must submit post-market surveillance reports every twelve "
    "months for all class III implantable devices."
)


def _involved(matches):
    ids = set()
    for m in matches:
        ids.update((m.record_id, m.matched_id))
    return ids


class TestFindDuplicates:
    def test_identical_titles_match_and_unrelated_does_not(self):
        records = [
            CandidateRecord(id="a", title="Device Recall X"),
            CandidateRecord(id="b", title="Device Recall X"),
            CandidateRecord(id="c", title="Unrelated Y"),
        ]

        matches = find_duplicates(records, threshold=0.85)

        assert _involved(matches) == {"a", "b"}
        assert all(m.match_type is MatchType.EXACT for m in matches)

    def test_anchor_self_entry_comes_first(self):
        records = [
            CandidateRecord(id="a", title="Device Recall X"),
            CandidateRecord(id="b", title="device recall x!"),
        ]

        matches = find_duplicates(records)

        assert matches[0].record_id == "a"
        assert matches[0].matched_id == "a"
        assert matches[0].similarity == 1.0
        assert matches[1].matched_id == "b"
        assert matches[1].match_type is MatchType.EXACT

    def test_fuzzy_title_match(self):
        records = [
            CandidateRecord(id="a", title="FDA recalls infusion pump model 123"),
            CandidateRecord(id="b", title="FDA recalls infusion pump model 124"),
        ]

        matches = find_duplicates(records, threshold=0.85)

        fuzzy = [m for m in matches if m.match_type is MatchType.FUZZY]
        assert len(fuzzy) == 1
        assert fuzzy[0].matched_id == "b"
        assert 0.85 <= fuzzy[0].similarity < 1.0

    def test_threshold_is_configurable(self):
        records = [
            CandidateRecord(id="a", title="FDA recalls infusion pump model 123"),
            CandidateRecord(id="b", title="FDA recalls infusion pump model 124"),
        ]

        assert find_duplicates(records, threshold=0.99) == []

    def test_semantic_match_on_content_with_different_titles(self):
        records = [
            CandidateRecord(id="a", title="Surveillance reporting rules", content=LONG_CONTENT),
            CandidateRecord(id="b", title="New obligations for implants", content=LONG_CONTENT),
        ]

        matches = find_duplicates(records)

        assert [m.match_type for m in matches] == [MatchType.EXACT, MatchType.SEMANTIC]
        assert matches[1].similarity == 1.0

    def test_pair_can_match_on_title_and_content(self):
        records = [
            CandidateRecord(id="a", title="Device Recall X", content=LONG_CONTENT),
            CandidateRecord(id="b", title="Device Recall X", content=LONG_CONTENT),
        ]

        matches = find_duplicates(records)
        pair_types = {m.match_type for m in matches if m.matched_id == "b"}

        assert pair_types == {MatchType.EXACT, MatchType.SEMANTIC}

    def test_first_seen_record_anchors_the_cluster(self):
        records = [
            CandidateRecord(id="first", title="Device Recall X"),
            CandidateRecord(id="second", title="Device Recall X"),
            CandidateRecord(id="third", title="Device Recall X"),
            CandidateRecord(id="fourth", title="Device Recall X"),
        ]

        matches = find_duplicates(records)

        assert {m.record_id for m in matches} == {"first"}
        assert [m.matched_id for m in matches] == ["first", "second", "third", "fourth"]

    def test_empty_titles_do_not_match_each_other(self):
        records = [
            CandidateRecord(id="a", title="", content="Short note about one thing."),
            CandidateRecord(id="b", title=None, content="Completely different text here."),
        ]

        assert find_duplicates(records) == []

    def test_empty_batch(self):
        assert find_duplicates([]) == []


class TestGrouping:
    def _match(self, record_id, matched_id, similarity, match_type=MatchType.FUZZY, title="Device recall"):
        return DuplicateMatch(
            record_id=record_id,
            matched_id=matched_id,
            title=title,
            similarity=similarity,
            match_type=match_type,
        )

    def test_distinct_ids_and_conservative_confidence(self):
        matches = [
            self._match("a", "a", 1.0, MatchType.EXACT),
            self._match("a", "b", 0.9),
            self._match("a", "b", 0.97, MatchType.SEMANTIC),
            self._match("a", "c", 0.95, MatchType.SEMANTIC),
        ]

        groups = group_duplicates(matches)

        assert len(groups) == 1
        assert groups[0].anchor_id == "a"
        assert groups[0].record_ids == ["a", "b", "c"]
        assert groups[0].confidence == 0.9
        assert groups[0].key == "device recall"

    def test_members_below_floor_are_not_admitted(self):
        matches = [
            self._match("a", "a", 1.0, MatchType.EXACT),
            self._match("a", "b", 0.9),
            self._match("a", "d", 0.7),
        ]

        groups = group_duplicates(matches, floor=0.8)

        assert groups[0].record_ids == ["a", "b"]

    def test_single_member_groups_are_dropped(self):
        matches = [
            self._match("a", "a", 1.0, MatchType.EXACT),
            self._match("a", "d", 0.7),
        ]

        assert group_duplicates(matches, floor=0.8) == []

    def test_shared_title_prefix_merges_clusters(self):
        prefix = "Guidance on the classification of software as a medical device"
        matches = [
            self._match("a", "a", 1.0, MatchType.EXACT, title=prefix + " part one"),
            self._match("a", "b", 0.95, title=prefix + " part one."),
            self._match("x", "x", 1.0, MatchType.EXACT, title=prefix + " annex"),
            self._match("x", "y", 0.9, title=prefix + " annex!"),
        ]

        groups = group_duplicates(matches)

        assert len(groups) == 1
        assert groups[0].record_ids == ["a", "b", "x", "y"]

    def test_clusters_without_title_text_stay_separate(self):
        other_content = (
            "The register of notified bodies was updated with three new "
            "designations under the in vitro diagnostics regulation."
        )
        records = [
            CandidateRecord(id="a1", title="----------", content=LONG_CONTENT),
            CandidateRecord(id="a2", title="----------", content=LONG_CONTENT),
            CandidateRecord(id="b1", title="==========", content=other_content),
            CandidateRecord(id="b2", title="==========", content=other_content),
        ]
        detector = DuplicateDetector()

        groups = detector.group(detector.find(records))

        assert [g.record_ids for g in groups] == [["a1", "a2"], ["b1", "b2"]]
        assert [g.key for g in groups] == ["#a1", "#b1"]
        assert select_removal_candidates(groups) == ["a2", "b2"]


class TestRemovalCandidates:
    def test_anchor_is_kept_and_others_proposed(self):
        records = [
            CandidateRecord(id="a", title="Device Recall X"),
            CandidateRecord(id="b", title="Device Recall X"),
            CandidateRecord(id="c", title="Device Recall X"),
            CandidateRecord(id="d", title="Something else entirely"),
        ]
        detector = DuplicateDetector()

        groups = detector.group(detector.find(records))

        assert select_removal_candidates(groups) == ["b", "c"]

    def test_report_bundles_detection(self):
        records = [
            CandidateRecord(id="a", title="Device Recall X"),
            CandidateRecord(id="b", title="Device Recall X"),
            CandidateRecord(id="c", title="Unrelated Y"),
        ]

        report = DuplicateDetector().report(records)

        assert report.total_records == 3
        assert report.removal_candidate_count == 1
        assert report.removal_candidates == ["b"]
        assert len(report.duplicate_groups) == 1
