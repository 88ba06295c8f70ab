"""Shared fixtures for pipeline tests."""

import pytest

from regqual.quality.models import CandidateRecord

VALID_CONTENT = (
    "The agency published updated guidance on cybersecurity requirements "
    "for connected medical devices."
)


def _make_record(id: str = "rec-1", **overrides) -> CandidateRecord:
    fields = dict(
        title="FDA issues cybersecurity guidance for devices",
        content=VALID_CONTENT,
        source="fda_guidance",
        authority="FDA",
        region="US",
        update_type="guidance",
        priority="high",
        published_at="2024-03-01T00:00:00Z",
        raw_metadata={"originalLink": "https://www.fda.gov/medical-devices"},
    )
    fields.update(overrides)
    return CandidateRecord(id=id, **fields)


@pytest.fixture
def make_record():
    """Factory for a fully valid record; keyword overrides introduce defects."""
    return _make_record


@pytest.fixture
def near_duplicate_batch():
    """Records 1 and 2 are near-duplicate titles, record 3 is distinct and has no title."""
    return [
        _make_record(
            "rec-1",
            title="FDA recalls infusion pump model 123",
            content="Voluntary recall of infusion pump model 123 due to a software fault affecting dosage.",
            update_type="alert",
        ),
        _make_record(
            "rec-2",
            title="FDA recalls infusion pump model 124",
            content="Recall notice covering pump 124 after several reports of battery overheating in clinics.",
            update_type="alert",
        ),
        _make_record(
            "rec-3",
            title="",
            content="Updated harmonised standards list for in vitro diagnostic devices published by the commission.",
            source="eu_commission",
            authority="European Commission",
            region="EU",
            update_type="standard",
        ),
    ]


@pytest.fixture
def distinct_batch():
    titles_and_contents = [
        ("Guidance on cybersecurity for networked devices",
         "Premarket submissions must now document threat modelling and patch plans."),
        ("Recall of insulin pump batch due to firmware fault",
         "Affected lots were shipped between January and March to hospital pharmacies."),
        ("Approval granted for new cardiac stent system",
         "The drug-eluting stent received approval following a two year clinical trial."),
        ("Standard update for sterilization of reusable instruments",
         "Revised validation requirements apply to moist heat processes from next year."),
        ("Alert issued about counterfeit surgical masks in circulation",
         "Inspectors found falsified certificates on masks sold through online retailers."),
    ]
    return [
        _make_record(f"rec-{i}", title=title, content=content)
        for i, (title, content) in enumerate(titles_and_contents, start=1)
    ]
