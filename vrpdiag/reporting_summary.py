"""Simple reporting helpers for unassigned-reason summaries."""

from __future__ import annotations

from typing import Optional

from .registry import PRIORITY_ORDER, describe


SUMMARY_COLUMNS = ["code", "description", "jobs", "share"]


def reason_summary_df(report):
    """One row per reason code present in the report, in resolver priority order."""
    pd = __import__("pandas")
    total = len(report.entries)
    grouped = report.by_code()
    order = [code for code in PRIORITY_ORDER if code in grouped]
    order += [code for code in grouped if code not in order]  # NO_REASON_FOUND last
    rows = []
    for code in order:
        count = len(grouped[code])
        rows.append({
            "code": code.value,
            "description": describe(code),
            "jobs": count,
            "share": count / total if total else 0.0,
        })
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def print_reason_summary(report, problem_jobs: Optional[int] = None) -> None:
    """Print concise per-reason counts."""
    df = reason_summary_df(report)
    header = f"[SUMMARY] unassigned={len(report.entries)}"
    if problem_jobs is not None:
        header += f" of {problem_jobs} jobs"
    print(header + f" elapsed={report.elapsed_seconds:.2f}s")
    for row in df.itertuples(index=False):
        print(f"  {row.code:<24} {row.jobs:>4}  {row.share:6.1%}  {row.description}")
