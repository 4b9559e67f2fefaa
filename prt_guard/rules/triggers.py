"""
Trigger classifier.

'pull_request_target' runs in the context of the base branch with
write permissions and access to secrets, even for pull requests opened
from forks. A workflow that only fires on the 'labeled' activity needs a
maintainer to attach the label first, which counts as an authorization
gate.
"""

from prt_guard.parser.workflow_parser import Workflow

PRIVILEGED_TRIGGER = "pull_request_target"

# A types filter made of exactly these activities makes the trigger safe
SAFE_ACTIVITY_TYPES = frozenset({"labeled"})


def is_exploitable_trigger(workflow: Workflow, trigger: str = PRIVILEGED_TRIGGER) -> bool:
    """True if the workflow fires on `trigger` for more than label events."""
    config = workflow.triggers.get(trigger)
    if config is None:
        return False
    return config.types is None or config.types != SAFE_ACTIVITY_TYPES
