"""
Claude LLM client: explains untrusted checkouts and proposes per-step fixes.

The detector already knows which steps are unsafe. Claude is asked, per
workflow file, to explain each flagged step and rewrite it. Every step is
addressed by its location (``jobs.<id>.steps[<n>]``) and Claude answers
with a JSON object keyed by those locations, so a reply that skips or
reorders steps still lines up with the right finding.
"""

import json
import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Optional

from anthropic import Anthropic
from anthropic.types import TextBlock

from prt_guard.rules.engine import Finding

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"

NO_EXPLANATION = "No explanation provided."
NO_FIX = "No fix suggested."
UNPARSED_FIX = "Could not parse fix suggestion."

# ```json ... ``` wrapper around the reply
_FENCE_RE = re.compile(r"^```(?:json)?\s*\n(.*)\n```$", re.DOTALL)


@dataclass
class EnrichedFinding:
    """A finding enriched with LLM-generated explanation and fix."""
    finding: Finding
    explanation: str    # how a fork can abuse the checkout
    suggested_fix: str  # replacement YAML for the step

    @property
    def location(self) -> str:
        return self.finding.location


SYSTEM_PROMPT = """You review GitHub Actions workflows triggered by 'pull_request_target'. Those runs
have the base repository's secrets and a write token, so any step that checks out the pull
request head lets a fork run its own code with those privileges.

You will receive the flagged steps grouped by job. Each step is identified by a key of the form
jobs.<job_id>.steps[<index>]. You will also receive the full workflow YAML.

Respond with EXACTLY one JSON object and nothing else. Use each step key as a property name:
{
  "jobs.build.steps[1]": {
    "explanation": "2-3 sentences on what a fork could do through this step, for a reader who knows GitHub Actions but not security.",
    "suggested_fix": "The replacement YAML for this step only. Prefer checking out the base ref. If the job needs the PR code, gate the job on a maintainer-applied label or move it to a 'pull_request' workflow."
  }
}

Include every key you were given and no other keys."""


def _group_by_job(findings: list[Finding]) -> dict[str, list[Finding]]:
    groups: dict[str, list[Finding]] = {}
    for f in findings:
        groups.setdefault(f.job_id, []).append(f)
    return groups


def _build_user_prompt(findings: list[Finding], workflow_yaml: str) -> str:
    """Build one prompt listing the flagged steps of a workflow, job by job."""
    parts = [f"Workflow: {findings[0].file_path}" if findings else "Workflow: (unknown)", ""]
    for job_id, job_findings in _group_by_job(findings).items():
        parts.append(f"Job '{job_id}':")
        for f in job_findings:
            line = f.line_number if f.line_number is not None else "unknown"
            parts.append(f"  - key: {f.location}")
            parts.append(f"    step: {f.step_name} (line {line})")
            parts.append(f"    ref: {f.ref_value}")
            parts.append(f"    untrusted value: {f.matched_ref}")
        parts.append("")

    keys = ", ".join(f.location for f in findings)
    parts.append("Full workflow YAML:")
    parts.append("")
    parts.append("```yaml")
    parts.append(workflow_yaml)
    parts.append("```")
    parts.append("")
    parts.append(f"Answer with a JSON object whose keys are exactly: {keys}")
    return "\n".join(parts)


def _parse_response(response_text: str) -> dict[str, Any]:
    """Decode Claude's reply into a mapping of step key to fix object.

    Raises:
        ValueError: If the reply isn't a JSON object.
    """
    text = response_text.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _text_field(item: dict[str, Any], key: str, default: str) -> str:
    value = item.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip("\n")
    return default


def enrich_findings(
    findings: list[Finding],
    workflow_yaml: str,
    api_key: Optional[str] = None,
    model: str = DEFAULT_MODEL,
) -> list[EnrichedFinding]:
    """
    Explain and fix the flagged steps of one workflow with a single Claude call.

    Args:
        findings: Findings of one workflow file, in document order.
        workflow_yaml: The workflow's YAML source.
        api_key: Anthropic API key. Falls back to ANTHROPIC_API_KEY env var.
        model: Claude model to use.

    Returns:
        One EnrichedFinding per finding, in the same order. Steps the reply
        leaves out get placeholder text; a reply that isn't a JSON object
        is used verbatim as the explanation of every step.
    """
    key = api_key or os.environ.get("ANTHROPIC_API_KEY")
    if not key:
        raise ValueError(
            "No Anthropic API key provided. Set ANTHROPIC_API_KEY environment "
            "variable or pass api_key parameter."
        )

    if not findings:
        return []

    logger.info(
        "Enriching %d step(s) of %s (model=%s)",
        len(findings), findings[0].file_path, model,
    )
    client = Anthropic(api_key=key)
    user_prompt = _build_user_prompt(findings, workflow_yaml)
    logger.debug("Prompt length: %d chars", len(user_prompt))

    t0 = time.monotonic()
    try:
        response = client.messages.create(
            model=model,
            max_tokens=4096,
            system=SYSTEM_PROMPT,
            messages=[
                {"role": "user", "content": user_prompt},
            ],
        )
    except Exception as e:
        logger.error("Claude API request failed: %s", e)
        raise

    elapsed_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "Claude response: %.0fms, tokens in=%s out=%s",
        elapsed_ms,
        getattr(response.usage, "input_tokens", None),
        getattr(response.usage, "output_tokens", None),
    )

    text_blocks = [b for b in response.content if isinstance(b, TextBlock)]
    response_text = "".join(b.text for b in text_blocks).strip()
    logger.debug("Raw response (%d chars): %.200s", len(response_text), response_text)

    try:
        fixes = _parse_response(response_text)
    except ValueError as e:  # json.JSONDecodeError is a ValueError
        logger.warning("Could not decode Claude response: %s. Starts with: %.200s", e, response_text)
        return [
            EnrichedFinding(finding=f, explanation=response_text, suggested_fix=UNPARSED_FIX)
            for f in findings
        ]

    unknown = set(fixes) - {f.location for f in findings}
    if unknown:
        logger.debug("Ignoring unrequested step key(s): %s", sorted(unknown))

    enriched = []
    for f in findings:
        item = fixes.get(f.location)
        if not isinstance(item, dict):
            logger.warning("No fix returned for %s", f.location)
            item = {}
        enriched.append(EnrichedFinding(
            finding=f,
            explanation=_text_field(item, "explanation", NO_EXPLANATION),
            suggested_fix=_text_field(item, "suggested_fix", NO_FIX),
        ))

    logger.info("Enrichment complete: %d step(s)", len(enriched))
    return enriched
