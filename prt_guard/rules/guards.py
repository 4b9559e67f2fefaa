"""
Guard evaluator: decides whether an `if:` condition is an authorization check.

Only a few shapes are recognized as guards, all of which need a trusted
party to act before the job or step can run:

  * a label check, since only users with triage access can apply labels
  * an actor check, since it pins execution to named users

Conditions are matched as text and never evaluated. A condition that
contains '||' needs manual review, so it never counts as a guard.
"""

import re
from typing import Iterable, Optional, Pattern

GUARD_PATTERN_SOURCES = (
    # contains(github.event.pull_request.labels.*.name, 'safe to test')
    r"\bcontains\s*\(\s*github\s*\.\s*event\s*\.\s*(?:issue|pull_request)\s*\.\s*labels\b",
    # github.event.label.name == 'safe to test'
    r"\bgithub\s*\.\s*event\s*\.\s*label\s*\.\s*name\s*==",
    # github.actor == 'dependabot[bot]'
    r"\bgithub\s*\.\s*actor\s*==",
)


def compile_guard_patterns(sources: Iterable[str]) -> tuple[Pattern[str], ...]:
    """Compile guard regular expressions the way the default ones are compiled.

    Raises re.error for an invalid expression.
    """
    return tuple(re.compile(src, re.IGNORECASE) for src in sources)


DEFAULT_GUARD_PATTERNS = compile_guard_patterns(GUARD_PATTERN_SOURCES)


def is_guarded(
    condition: Optional[str],
    patterns: Iterable[Pattern[str]] = DEFAULT_GUARD_PATTERNS,
) -> bool:
    """True if `condition` is a sufficient authorization guard."""
    if condition is None:
        return False
    if "||" in condition:
        return False
    return any(p.search(condition) for p in patterns)


def is_probable(
    condition: Optional[str],
    patterns: Iterable[Pattern[str]] = DEFAULT_GUARD_PATTERNS,
) -> bool:
    """True if a job or step with this condition may run for an untrusted PR."""
    return not is_guarded(condition, patterns)
