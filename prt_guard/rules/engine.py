"""
Rule engine: defines the Finding model, the detector settings, and runs
every registered rule against a workflow.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Pattern

from prt_guard.parser.workflow_parser import Workflow
from prt_guard.rules.guards import DEFAULT_GUARD_PATTERNS
from prt_guard.rules.triggers import PRIVILEGED_TRIGGER
from prt_guard.rules.untrusted_refs import REF_PARAMETER, UNTRUSTED_REFS

logger = logging.getLogger(__name__)

CHECKOUT_ACTION = "actions/checkout"


@dataclass(frozen=True)
class RuleSettings:
    """Knobs that control what the detector considers privileged, a checkout, untrusted or guarded."""
    trigger: str = PRIVILEGED_TRIGGER
    checkout_action: str = CHECKOUT_ACTION
    ref_parameter: str = REF_PARAMETER
    untrusted_refs: tuple[str, ...] = UNTRUSTED_REFS
    guard_patterns: tuple[Pattern[str], ...] = DEFAULT_GUARD_PATTERNS


DEFAULT_SETTINGS = RuleSettings()


@dataclass(frozen=True)
class Finding:
    """A single security finding produced by a rule, scoped to one step."""
    rule_id: str          # e.g. "untrusted-checkout"
    message: str
    file_path: str        # which workflow file
    job_id: str
    step_index: int       # 0-based position of the step in its job
    step_name: str
    line_number: Optional[int] = None
    ref_value: str = ""    # the offending parameter value
    matched_ref: str = ""  # the untrusted accessor it contains

    @property
    def location(self) -> str:
        """Dotted path of the step inside the workflow, e.g. jobs.build.steps[1]."""
        return f"jobs.{self.job_id}.steps[{self.step_index}]"


# Type alias: a rule takes a Workflow plus settings and returns findings
RuleFunc = Callable[[Workflow, RuleSettings], list[Finding]]

# Registry of all rules
_rules: list[RuleFunc] = []


def register_rule(func: RuleFunc) -> RuleFunc:
    """Decorator to register a rule function."""
    _rules.append(func)
    logger.debug("Registered rule: %s", func.__name__)
    return func


def analyze(workflow: Workflow, settings: Optional[RuleSettings] = None) -> list[Finding]:
    """Run every registered rule against a workflow and return all findings.

    Findings keep document order (job, then step).
    """
    settings = settings or DEFAULT_SETTINGS
    logger.info("Running %d rule(s) against %s", len(_rules), workflow.file_path)
    t0 = time.monotonic()
    findings = []
    for rule in _rules:
        rule_t0 = time.monotonic()
        rule_findings = rule(workflow, settings)
        rule_ms = (time.monotonic() - rule_t0) * 1000
        findings.extend(rule_findings)
        logger.debug(
            "Rule '%s': %d finding(s) in %.1fms",
            rule.__name__, len(rule_findings), rule_ms,
        )
    total_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "Completed: %d finding(s) for %s in %.1fms",
        len(findings), workflow.file_path, total_ms,
    )
    return findings
