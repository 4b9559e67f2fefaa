"""
Enriched console reporter: flagged steps with Claude's explanations and fixes,
grouped by workflow file and job.
"""

import logging

from prt_guard.llm.claude_client import EnrichedFinding

logger = logging.getLogger(__name__)


# ANSI color codes
RED = "\033[91m"
BOLD = "\033[1m"
DIM = "\033[2m"
GREEN = "\033[32m"
RESET = "\033[0m"


def _group(enriched_findings: list[EnrichedFinding]) -> dict[str, dict[str, list[EnrichedFinding]]]:
    """file path -> job id -> findings, keeping first-seen order."""
    grouped: dict[str, dict[str, list[EnrichedFinding]]] = {}
    for ef in enriched_findings:
        f = ef.finding
        grouped.setdefault(f.file_path, {}).setdefault(f.job_id, []).append(ef)
    return grouped


def _indented(text: str, prefix: str, color: str = "") -> list[str]:
    end = RESET if color else ""
    return [f"{prefix}{color}{line}{end}" for line in text.split("\n")]


def report_enriched(enriched_findings: list[EnrichedFinding], file_path: str = "") -> str:
    """
    Format enriched findings as a colored console report.

    Each workflow file gets a section and each job a sub-heading, so the
    suggested fixes for one job read together.
    """
    lines = []

    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append(f"{BOLD}  pull_request_target Checkout Report (AI-Enhanced){RESET}")
    if file_path:
        lines.append(f"  Scanned: {file_path}")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    if not enriched_findings:
        lines.append(f"  ✅ No security issues found!")
        lines.append("")
        report = "\n".join(lines)
        logger.info("Enriched report: no findings")
        print(report)
        return report

    grouped = _group(enriched_findings)
    job_count = sum(len(jobs) for jobs in grouped.values())
    lines.append(
        f"  Found {BOLD}{len(enriched_findings)}{RESET} unsafe checkout(s) "
        f"in {job_count} job(s) across {len(grouped)} workflow file(s)."
    )

    for wf_path, jobs in grouped.items():
        lines.append("")
        lines.append(f"  {'-' * 56}")
        lines.append(f"  {BOLD}{wf_path}{RESET}")

        for job_id, job_findings in jobs.items():
            lines.append("")
            lines.append(f"  {RED}{BOLD}Job '{job_id}'{RESET} {DIM}({len(job_findings)} step(s)){RESET}")

            for ef in job_findings:
                f = ef.finding
                line = f":{f.line_number}" if f.line_number is not None else ""
                lines.append("")
                lines.append(f"    {BOLD}{ef.location}{RESET} {f.step_name}{DIM}{line}{RESET}")
                lines.append(f"      Ref: {DIM}{f.ref_value}{RESET}")
                lines.append(f"      {BOLD}Why this matters:{RESET}")
                lines.extend(_indented(ef.explanation, "        "))
                lines.append(f"      {GREEN}{BOLD}Suggested fix:{RESET}")
                lines.extend(_indented(ef.suggested_fix, "        ", GREEN))

    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    logger.info(
        "Enriched report: %d finding(s) in %d job(s)",
        len(enriched_findings), job_count,
    )
    report = "\n".join(lines)
    print(report)
    return report
