"""
Untrusted-reference detector.

These accessors resolve to the fork's branch name, the fork's head commit
or the pull request number, all of which point at attacker-controlled
code. Values such as merge_commit_sha, repository.default_branch or
event.after are not listed and are therefore not flagged.
"""

from typing import Iterable, Optional

UNTRUSTED_REFS = (
    "github.event.pull_request.head.ref",
    "github.event.pull_request.head.sha",
    "github.event.pull_request.number",
    "github.event.number",
    "github.head_ref",
)

# The checkout parameter that selects what gets checked out
REF_PARAMETER = "ref"


def references_untrusted_ref(
    value: Optional[str],
    untrusted_refs: Iterable[str] = UNTRUSTED_REFS,
) -> Optional[str]:
    """Return the first untrusted accessor found in `value`, or None."""
    if not value:
        return None
    for accessor in untrusted_refs:
        if accessor in value:
            return accessor
    return None
