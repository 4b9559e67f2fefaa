"""
Console reporter: prints findings to the terminal with colors and formatting.
"""

from prt_guard.rules.engine import Finding


# ANSI color codes for terminal output
RED = "\033[91m"
BOLD = "\033[1m"
DIM = "\033[2m"
RESET = "\033[0m"


def _location(f: Finding) -> str:
    if f.line_number is not None:
        return f"{f.file_path}:{f.line_number}"
    return f.file_path


def report_console(findings: list[Finding], file_path: str = "") -> str:
    """
    Format findings as a colored console report.

    Args:
        findings: List of Finding objects to report.
        file_path: Optional label for the report header.

    Returns:
        The formatted report string (also prints it).
    """
    lines = []

    # Header
    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append(f"{BOLD}  pull_request_target Checkout Report{RESET}")
    if file_path:
        lines.append(f"  File: {file_path}")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    if not findings:
        lines.append(f"  ✅ No security issues found!")
        lines.append("")
        report = "\n".join(lines)
        print(report)
        return report

    files = {f.file_path for f in findings}
    lines.append(
        f"  Found {BOLD}{len(findings)}{RESET} issue(s) in {len(files)} workflow file(s)."
    )
    lines.append("")
    lines.append(f"  {'-' * 56}")

    # Individual findings
    for i, f in enumerate(findings, 1):
        lines.append("")
        lines.append(f"  {RED}{BOLD}#{i}{RESET} {BOLD}{f.message}{RESET}")
        lines.append(f"    Rule:  {f.rule_id}")
        lines.append(f"    File:  {_location(f)}")
        lines.append(f"    Job:   {f.job_id}")
        lines.append(f"    Step:  #{f.step_index} {f.step_name}")
        if f.ref_value:
            lines.append(f"    Ref:   {f.ref_value}")
            lines.append(f"    {DIM}(uses untrusted '{f.matched_ref}'){RESET}")

    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    report = "\n".join(lines)
    print(report)
    return report
