"""
SARIF reporter: outputs findings in SARIF 2.1.0 format for GitHub Code Scanning.

SARIF (Static Analysis Results Interchange Format) is a JSON standard that
GitHub's Code Scanning feature understands. Upload the output to GitHub and
findings appear as annotations directly on the PR diff in the Security tab.

Reference: https://docs.github.com/en/code-security/code-scanning/integrating-with-code-scanning/sarif-support-for-code-scanning
"""

import json
import logging
from typing import Any, Optional

from prt_guard.parser.workflow_parser import WorkflowParseError
from prt_guard.rules.engine import Finding
from prt_guard.rules.untrusted_checkout import RULE_ID, MESSAGE

logger = logging.getLogger(__name__)

TOOL_NAME = "prt-guard"
TOOL_VERSION = "0.1.0"
SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"
SARIF_VERSION = "2.1.0"

# Checking out PR code with a write token and secrets is remote code execution
SECURITY_SEVERITY = "9.3"

_RULE_HELP = (
    "Workflows triggered by 'pull_request_target' run with the base repository's "
    "secrets and a write token. Checking out the pull request head and building "
    "or testing it runs attacker-controlled code with those privileges. Check out "
    "the base ref, split the work into a 'pull_request' workflow, or gate the job "
    "on a maintainer-applied label or an actor check."
)


def _build_rules(findings: list[Finding]) -> list[dict[str, Any]]:
    """Build the SARIF rules array, one entry per rule ID seen."""
    rule_ids = list(dict.fromkeys(f.rule_id for f in findings))
    rules = []
    for rule_id in rule_ids:
        rule: dict[str, Any] = {
            "id": rule_id,
            "name": rule_id.replace("-", " ").title().replace(" ", ""),
            "shortDescription": {"text": MESSAGE},
            "properties": {
                "security-severity": SECURITY_SEVERITY,
                "tags": ["security", "github-actions", "supply-chain"],
            },
        }
        if rule_id == RULE_ID:
            rule["fullDescription"] = {"text": _RULE_HELP}
        rules.append(rule)
    return rules


def _build_result(f: Finding) -> dict[str, Any]:
    """Build a single SARIF result object from a Finding."""
    return {
        "ruleId": f.rule_id,
        "level": "error",
        "message": {"text": f.message},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": {
                        "uri": f.file_path,
                        "uriBaseId": "%SRCROOT%",
                    },
                    # SARIF requires a region; fall back to the top of the file
                    "region": {"startLine": f.line_number or 1},
                },
                "logicalLocations": _build_logical_locations(f),
            }
        ],
        "properties": {
            "ref": f.ref_value,
            "untrustedRef": f.matched_ref,
        },
    }


def _build_logical_locations(f: Finding) -> list[dict[str, str]]:
    """Build logical location entries (job / step) for a finding."""
    return [
        {"name": f.job_id, "kind": "job"},
        {
            "name": f.step_name,
            "fullyQualifiedName": f.location,
            "kind": "step",
        },
    ]


def _build_notification(e: WorkflowParseError) -> dict[str, Any]:
    """Build a tool execution notification for a workflow that could not be analyzed."""
    text = f"{e.location}: {e.message}" if e.location else e.message
    return {
        "level": "error",
        "message": {"text": text},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": {
                        "uri": e.file_path,
                        "uriBaseId": "%SRCROOT%",
                    },
                    "region": {"startLine": e.line_number or 1},
                },
            }
        ],
    }


def report_sarif(findings: list[Finding], errors: Optional[list[WorkflowParseError]] = None) -> str:
    """
    Format findings as a SARIF 2.1.0 JSON string.

    The output can be uploaded to GitHub Code Scanning via:
      gh code-scanning upload-results --sarif results.sarif

    Or in a GitHub Actions workflow:
      - uses: github/codeql-action/upload-sarif@v3
        with:
          sarif_file: results.sarif

    Args:
        findings: List of Finding objects to report.
        errors: Workflow files that could not be analyzed. Each one becomes
            an error notification on the run's invocation.

    Returns:
        A SARIF 2.1.0 JSON string.
    """
    sarif: dict[str, Any] = {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": TOOL_NAME,
                        "version": TOOL_VERSION,
                        "rules": _build_rules(findings),
                    }
                },
                "invocations": [
                    {
                        "executionSuccessful": not errors,
                        "toolExecutionNotifications": [_build_notification(e) for e in errors or []],
                    }
                ],
                "results": [_build_result(f) for f in findings],
            }
        ],
    }

    output = json.dumps(sarif, indent=2)
    logger.info("SARIF report: %d finding(s), %d bytes", len(findings), len(output))
    return output
