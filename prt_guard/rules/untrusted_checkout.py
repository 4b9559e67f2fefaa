"""
Rule: Detect checkout of untrusted pull request code on 'pull_request_target'.

A 'pull_request_target' workflow has secrets and a write token. Checking
out the PR head (by branch, SHA or PR number) and then building or
testing it lets a fork run arbitrary code with those privileges.

A step is reported when:
  * the workflow trigger is exploitable (not restricted to 'labeled'),
  * the step uses the checkout action with an untrusted 'ref', and
  * neither the step nor its job has an actor/label guard.
"""

import logging

from prt_guard.parser.workflow_parser import Workflow
from prt_guard.rules.engine import register_rule, Finding, RuleSettings
from prt_guard.rules.guards import is_probable
from prt_guard.rules.triggers import is_exploitable_trigger
from prt_guard.rules.untrusted_refs import references_untrusted_ref

logger = logging.getLogger(__name__)

RULE_ID = "untrusted-checkout"
MESSAGE = "Potential unsafe checkout of untrusted pull request on a privileged trigger."


@register_rule
def check_untrusted_checkout(workflow: Workflow, settings: RuleSettings) -> list[Finding]:
    if not is_exploitable_trigger(workflow, settings.trigger):
        logger.debug("%s: no exploitable '%s' trigger", workflow.file_path, settings.trigger)
        return []

    findings = []
    for job in workflow.jobs:
        job_probable = is_probable(job.condition, settings.guard_patterns)
        for step in job.steps:
            if step.uses is None or step.uses.action_id != settings.checkout_action:
                continue

            ref_value = step.with_args.get(settings.ref_parameter)
            matched = references_untrusted_ref(ref_value, settings.untrusted_refs)
            if matched is None:
                continue

            # A guard on either the job or the step is enough
            if not job_probable or not is_probable(step.condition, settings.guard_patterns):
                logger.debug(
                    "Guarded checkout in job '%s' step %d, skipping",
                    job.job_id, step.index,
                )
                continue

            findings.append(Finding(
                rule_id=RULE_ID,
                message=MESSAGE,
                file_path=workflow.file_path,
                job_id=job.job_id,
                step_index=step.index,
                step_name=step.name or step.uses.full_ref,
                line_number=step.line_number,
                ref_value=ref_value,
                matched_ref=matched,
            ))
    return findings
