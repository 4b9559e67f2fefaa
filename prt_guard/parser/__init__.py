from .workflow_parser import (
    parse_workflow,
    parse_workflow_text,
    parse_workflows_dir,
    Workflow,
    Job,
    Step,
    ActionRef,
    TriggerConfig,
    WorkflowParseError,
)

__all__ = [
    "parse_workflow",
    "parse_workflow_text",
    "parse_workflows_dir",
    "Workflow",
    "Job",
    "Step",
    "ActionRef",
    "TriggerConfig",
    "WorkflowParseError",
]
