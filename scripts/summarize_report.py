"""
Summarize a saved quality report.

Usage: python scripts/summarize_report.py [outputs/quality_report.json]
"""

import json
import sys
from collections import Counter
from pathlib import Path


def summarize(path: Path):
    report = json.loads(path.read_text())

    print(f"\n{'='*50}")
    print(f" Report: {path.name} ({report['total_updates']} updates)")
    print(f"{'='*50}\n")

    total = report["total_updates"]
    valid = report["valid_updates"]
    ratio = valid / total if total else 0
    print(f"  Valid: {valid}/{total} ({ratio:.0%}), avg score {report['average_quality_score']}")

    errors = Counter(e for r in report["validation_results"] for e in r["errors"])
    warnings = Counter(w for r in report["validation_results"] for w in r["warnings"])
    for label, counter in (("Errors", errors), ("Warnings", warnings)):
        if counter:
            print(f"\n  {label} (sampled):")
            for message, count in counter.most_common(5):
                print(f"    {count}x {message}")

    match_types = Counter(d["match_type"] for d in report["duplicates"])
    print(f"\n  Duplicate matches: {dict(match_types)}")
    print(f"  Removal candidates: {len(report['removal_candidates'])}\n")


if __name__ == "__main__":
    summarize(Path(sys.argv[1] if len(sys.argv) > 1 else "outputs/quality_report.json"))
