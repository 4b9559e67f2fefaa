"""
JSON reporter: outputs findings as structured JSON for programmatic use.
"""

import json
import logging
from typing import Optional

from prt_guard.parser.workflow_parser import WorkflowParseError
from prt_guard.rules.engine import Finding

logger = logging.getLogger(__name__)


def report_json(findings: list[Finding], errors: Optional[list[WorkflowParseError]] = None) -> str:
    """
    Format findings as a JSON string.

    Args:
        findings: List of Finding objects to report.
        errors: Workflow files that could not be analyzed.

    Returns:
        A JSON string with all findings and errors.
    """
    data = {
        "total": len(findings),
        "findings": [
            {
                "rule_id": f.rule_id,
                "message": f.message,
                "file_path": f.file_path,
                "job_id": f.job_id,
                "step_index": f.step_index,
                "step_name": f.step_name,
                "line_number": f.line_number,
                "ref_value": f.ref_value,
                "matched_ref": f.matched_ref,
            }
            for f in findings
        ],
        "errors": [
            {
                "file_path": e.file_path,
                "location": e.location,
                "line_number": e.line_number,
                "message": e.message,
            }
            for e in errors or []
        ],
    }
    output = json.dumps(data, indent=2)
    logger.info("JSON report: %d finding(s), %d bytes", len(findings), len(output))
    return output
