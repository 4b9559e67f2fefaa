"""
Parser for GitHub Actions workflow files.

Reads .yml/.yaml files and builds the immutable Workflow → Job → Step
model the detector works on. Only the fields the detector needs are
extracted (triggers, `if:` conditions, `uses:` and `with:`); everything
else in the document is ignored.

Conditions and `with:` values are kept verbatim since all matching on
them is textual.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)

_LINE_KEY = "__line__"


class _LineLoader(yaml.SafeLoader):
    """PyYAML loader that stores the start line number on every mapping node."""


def _construct_mapping(loader: _LineLoader, node: yaml.MappingNode) -> dict[Any, Any]:
    mapping: dict[Any, Any] = loader.construct_mapping(node, deep=True)
    mapping[_LINE_KEY] = node.start_mark.line + 1  # YAML lines are 0-indexed
    return mapping


_LineLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


class WorkflowParseError(ValueError):
    """The document does not have the workflow → jobs → steps shape."""

    def __init__(
        self,
        message: str,
        file_path: str,
        location: str = "",
        line_number: Optional[int] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.location = location
        self.line_number = line_number
        super().__init__(str(self))

    def __str__(self) -> str:
        where = self.file_path
        if self.line_number is not None:
            where = f"{where}:{self.line_number}"
        if self.location:
            return f"{where}: {self.location}: {self.message}"
        return f"{where}: {self.message}"


@dataclass(frozen=True)
class ActionRef:
    """A reference to a GitHub Action used in a step."""
    full_ref: str       # e.g. "actions/checkout@v3"
    owner: str          # e.g. "actions"
    repo: str           # e.g. "checkout"
    ref: str            # e.g. "v3" or a SHA

    @property
    def action_id(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class TriggerConfig:
    """One entry of the workflow's `on:` block."""
    name: str
    types: Optional[frozenset[str]] = None  # activity-type filter, None if absent


@dataclass(frozen=True)
class Step:
    """A single step within a job."""
    index: int
    name: Optional[str] = None
    uses: Optional[ActionRef] = None
    condition: Optional[str] = None
    with_args: Mapping[str, str] = field(default_factory=dict)
    line_number: Optional[int] = None

    def __post_init__(self):
        # Frozen only covers attribute assignment, so wrap the mapping too
        object.__setattr__(self, "with_args", MappingProxyType(dict(self.with_args)))


@dataclass(frozen=True)
class Job:
    """A single job within a workflow."""
    job_id: str
    name: Optional[str] = None
    condition: Optional[str] = None
    steps: tuple[Step, ...] = ()
    line_number: Optional[int] = None


@dataclass(frozen=True)
class Workflow:
    """A parsed GitHub Actions workflow."""
    file_path: str
    name: Optional[str] = None
    triggers: Mapping[str, TriggerConfig] = field(default_factory=dict)
    jobs: tuple[Job, ...] = ()
    line_number: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "triggers", MappingProxyType(dict(self.triggers)))


def _as_text(value: Any) -> Optional[str]:
    """Return a YAML scalar as text without altering string values."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_action_ref(uses_string: str) -> Optional[ActionRef]:
    """Parse an action reference like 'actions/checkout@v3' into components."""
    if not uses_string or "/" not in uses_string:
        logger.debug("Skipping non-action uses reference: %s", uses_string)
        return None

    # Handle docker:// and ./ (local) actions
    if uses_string.startswith("docker://") or uses_string.startswith("./"):
        logger.debug("Skipping local/docker action: %s", uses_string)
        return None

    # Split owner/repo@ref
    if "@" not in uses_string:
        logger.debug("Skipping action without version ref: %s", uses_string)
        return None

    action_path, ref = uses_string.rsplit("@", 1)
    parts = action_path.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None

    logger.debug("Parsed action %s/%s@%s", parts[0], parts[1], ref[:12])
    return ActionRef(
        full_ref=uses_string,
        owner=parts[0],
        repo=parts[1],
        ref=ref,
    )


def _parse_types(trigger_body: Any) -> Optional[frozenset[str]]:
    """Extract the `types:` activity filter of a trigger, if any."""
    if not isinstance(trigger_body, dict):
        return None
    types = trigger_body.get("types")
    if types is None:
        return None
    if isinstance(types, list):
        return frozenset(_as_text(t) for t in types if t is not None)
    return frozenset([_as_text(types)])


def _parse_triggers(on_field: Union[str, list[Any], dict[Any, Any], None]) -> dict[str, TriggerConfig]:
    """Normalize the 'on' field into a mapping of trigger name to its config."""
    if isinstance(on_field, str):
        return {on_field: TriggerConfig(name=on_field)}
    if isinstance(on_field, list):
        return {
            str(name): TriggerConfig(name=str(name))
            for name in on_field
            if isinstance(name, str)
        }
    if isinstance(on_field, dict):
        return {
            str(name): TriggerConfig(name=str(name), types=_parse_types(body))
            for name, body in on_field.items()
            if name != _LINE_KEY
        }
    return {}


def _parse_with(with_raw: Any, file_path: str, location: str, line: Optional[int]) -> dict[str, str]:
    if with_raw is None:
        return {}
    if not isinstance(with_raw, dict):
        raise WorkflowParseError("'with' must be a mapping", file_path, location, line)
    return {
        str(key): _as_text(value)
        for key, value in with_raw.items()
        if key != _LINE_KEY and value is not None
    }


def _parse_step(index: int, step_raw: Any, file_path: str, location: str, job_line: Optional[int]) -> Step:
    """Parse a raw step dictionary into a Step dataclass."""
    if not isinstance(step_raw, dict):
        raise WorkflowParseError("step must be a mapping", file_path, location, job_line)

    line = step_raw.get(_LINE_KEY)
    uses_str = step_raw.get("uses")
    return Step(
        index=index,
        name=_as_text(step_raw.get("name")),
        uses=_parse_action_ref(uses_str) if isinstance(uses_str, str) else None,
        condition=_as_text(step_raw.get("if")),
        with_args=_parse_with(step_raw.get("with"), file_path, f"{location}.with", line),
        line_number=line,
    )


def _parse_job(job_id: str, job_raw: Any, file_path: str, jobs_line: Optional[int]) -> Job:
    """Parse a raw job dictionary into a Job dataclass."""
    location = f"jobs.{job_id}"
    if not isinstance(job_raw, dict):
        raise WorkflowParseError("job must be a mapping", file_path, location, jobs_line)

    line = job_raw.get(_LINE_KEY)
    steps_raw = job_raw.get("steps")
    if steps_raw is None:
        steps_raw = []
    elif not isinstance(steps_raw, list):
        raise WorkflowParseError("'steps' must be a list", file_path, f"{location}.steps", line)

    logger.debug("Parsing job '%s' with %d step(s)", job_id, len(steps_raw))
    return Job(
        job_id=job_id,
        name=_as_text(job_raw.get("name")),
        condition=_as_text(job_raw.get("if")),
        steps=tuple(
            _parse_step(i, s, file_path, f"{location}.steps[{i}]", line)
            for i, s in enumerate(steps_raw)
        ),
        line_number=line,
    )


def parse_workflow_text(text: str, file_path: str = "<string>") -> Workflow:
    """
    Parse workflow YAML source into a Workflow.

    Raises:
        WorkflowParseError: If the YAML is invalid or the document does not
            have the expected mapping shape.
    """
    try:
        raw = yaml.load(text, Loader=_LineLoader)  # noqa: S506  # _LineLoader is safe
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        raise WorkflowParseError(f"invalid YAML: {e}", file_path, line_number=line) from e

    if not isinstance(raw, dict):
        logger.error("File is not a valid YAML mapping: %s", file_path)
        raise WorkflowParseError("workflow is not a YAML mapping", file_path)

    jobs_raw = raw.get("jobs")
    if jobs_raw is None:
        jobs_raw = {}
    elif not isinstance(jobs_raw, dict):
        raise WorkflowParseError("'jobs' must be a mapping", file_path, "jobs", raw.get(_LINE_KEY))

    jobs_line = jobs_raw.get(_LINE_KEY)
    jobs = tuple(
        _parse_job(str(job_id), job_data, file_path, jobs_line)
        for job_id, job_data in jobs_raw.items()
        if job_id != _LINE_KEY
    )
    triggers = _parse_triggers(raw.get("on", raw.get(True)))
    logger.debug(
        "Parsed '%s': %d job(s), triggers=%s",
        raw.get("name", "(unnamed)"), len(jobs), list(triggers),
    )

    return Workflow(
        file_path=file_path,
        name=_as_text(raw.get("name")),
        triggers=triggers,
        jobs=jobs,
        line_number=raw.get(_LINE_KEY),
    )


def parse_workflow(file_path: str) -> Workflow:
    """
    Parse a single GitHub Actions workflow YAML file.

    Args:
        file_path: Path to the .yml/.yaml workflow file.

    Returns:
        A Workflow dataclass with normalized data.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        WorkflowParseError: If the file can't be read as UTF-8 text or isn't
            a structurally valid workflow.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Workflow file not found: {file_path}")

    logger.info("Parsing workflow: %s", file_path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (UnicodeDecodeError, OSError) as e:
        logger.error("Cannot read workflow %s: %s", file_path, e)
        raise WorkflowParseError(f"cannot read file: {e}", str(path)) from e

    return parse_workflow_text(text, str(path))


def parse_workflows_dir(dir_path: str) -> tuple[list[Workflow], list[WorkflowParseError]]:
    """
    Parse all workflow files in a directory.

    A file that fails to parse is recorded and skipped; the remaining
    files are still parsed.

    Args:
        dir_path: Path to a directory containing .yml/.yaml files
                  (typically .github/workflows/).

    Returns:
        The parsed workflows and the errors of the files that were skipped.
    """
    path = Path(dir_path)
    if not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {dir_path}")

    yaml_files = sorted(f for f in path.iterdir() if f.is_file() and f.suffix in (".yml", ".yaml"))
    logger.debug("Found %d YAML file(s) in %s", len(yaml_files), dir_path)

    workflows = []
    errors = []
    for file in yaml_files:
        try:
            workflows.append(parse_workflow(str(file)))
        except WorkflowParseError as e:
            logger.warning("Skipping invalid workflow %s: %s", file.name, e)
            errors.append(e)

    logger.info("Parsed %d workflow(s) from %s (%d error(s))", len(workflows), dir_path, len(errors))
    return workflows, errors
