"""
Quality report builder.

Runs the validator over every record and the duplicate detector once over
the batch, then derives counts and recommendations. A failing sub-step
degrades to an empty sub-result plus a "not available" recommendation; the
report itself always renders.
"""

from collections.abc import Sequence

from regqual.config.settings import settings
from regqual.quality.duplicates import DuplicateDetector, select_removal_candidates
from regqual.quality.models import (
    CandidateRecord,
    DuplicateGroup,
    DuplicateMatch,
    QualityReport,
    ValidationResult,
)
from regqual.quality.validator import RecordValidator
from regqual.logger import get_logger

logger = get_logger(__name__)

ACCEPTABLE_AVERAGE_SCORE = 70
LOW_QUALITY_SCORE = 60
MAX_DUPLICATE_RATIO = 0.1
MIN_VALID_RATIO = 0.95


class QualityReportBuilder:
    def __init__(
        self,
        validator: RecordValidator | None = None,
        detector: DuplicateDetector | None = None,
        validation_sample: int | None = None,
        duplicate_sample: int | None = None,
    ):
        self.validator = validator or RecordValidator()
        self.detector = detector or DuplicateDetector()
        self.validation_sample = validation_sample or settings.report_validation_sample
        self.duplicate_sample = duplicate_sample or settings.report_duplicate_sample

    def build(self, records: Sequence[CandidateRecord]) -> QualityReport:
        total = len(records)
        logger.info("quality_report_started", records=total)

        if total == 0:
            return QualityReport(recommendations=["No records in batch. Nothing to assess."])

        unavailable: list[str] = []

        try:
            validations = [self.validator.validate(r) for r in records]
        except Exception as e:
            logger.error("validation_failed", error=str(e))
            validations = []
            unavailable.append(
                f"Validation results not available ({e}). Scores and validity counts are zeroed."
            )

        try:
            matches = self.detector.find(records)
            groups = self.detector.group(matches)
        except Exception as e:
            logger.error("duplicate_detection_failed", error=str(e))
            matches, groups = [], []
            unavailable.append(
                f"Duplicate detection not available ({e}). Duplicate counts are zeroed."
            )

        report = self._assemble(total, validations, matches, groups)
        report.recommendations = unavailable + self._recommend(report, validations)

        logger.info(
            "quality_report_done",
            records=total,
            valid=report.valid_updates,
            average_score=report.average_quality_score,
            duplicates=report.duplicate_count,
        )
        return report

    def _assemble(
        self,
        total: int,
        validations: list[ValidationResult],
        matches: list[DuplicateMatch],
        groups: list[DuplicateGroup],
    ) -> QualityReport:
        involved: set[str] = set()
        for m in matches:
            involved.add(m.record_id)
            involved.add(m.matched_id)

        average = sum(v.score for v in validations) / total if validations else 0.0

        return QualityReport(
            total_updates=total,
            valid_updates=sum(1 for v in validations if v.is_valid),
            average_quality_score=round(average, 2),
            total_errors=sum(len(v.errors) for v in validations),
            total_warnings=sum(len(v.warnings) for v in validations),
            duplicate_count=len(involved),
            duplicate_groups=groups,
            validation_results=validations[: self.validation_sample],
            duplicates=matches[: self.duplicate_sample],
            removal_candidates=select_removal_candidates(groups),
            invalid_ids=[v.record_id for v in validations if not v.is_valid],
        )

    @staticmethod
    def _recommend(report: QualityReport, validations: list[ValidationResult]) -> list[str]:
        recommendations: list[str] = []
        total = report.total_updates

        if report.duplicate_count > total * MAX_DUPLICATE_RATIO:
            recommendations.append(
                "High duplicate rate detected. Review removal candidates and tighten deduplication upstream."
            )

        if not validations:
            return recommendations

        if report.average_quality_score < ACCEPTABLE_AVERAGE_SCORE:
            recommendations.append(
                "Overall data quality is below acceptable threshold. Review data collection processes."
            )

        if report.total_errors > 0:
            recommendations.append(
                f"{report.total_errors} validation errors found in "
                f"{len(report.invalid_ids)} record(s): {', '.join(report.invalid_ids)}. "
                "Address critical data issues."
            )

        low_quality = sum(1 for v in validations if v.score < LOW_QUALITY_SCORE)
        if low_quality:
            recommendations.append(
                f"{low_quality} updates have low quality scores. Review and improve data sources."
            )

        if report.valid_updates / total < MIN_VALID_RATIO:
            recommendations.append(
                "Less than 95% of updates are valid. Strengthen validation at data ingestion."
            )

        return recommendations
