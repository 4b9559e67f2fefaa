"""
CLI entry point: ties together parser → detector → LLM → reporter.

Usage:
  # Scan a workflows directory:
  prt-guard scan path/to/.github/workflows/

  # AI-enhanced scan (with Claude explanations):
  prt-guard scan path/to/.github/workflows/ --enrich

  # Output as JSON or SARIF:
  prt-guard scan path/to/.github/workflows/ --format json
  prt-guard scan path/to/.github/workflows/ --format sarif > results.sarif

  # Scan a single file:
  python3 -m prt_guard scan path/to/workflow.yml

Exit codes:
  0: no findings
  1: findings detected
  2: error (bad input, unparseable workflow, missing API key, etc.)
"""

import logging
import os
import sys
from collections import defaultdict

import click

from prt_guard.config import load_config, ConfigError
from prt_guard.parser import parse_workflow, parse_workflows_dir, WorkflowParseError
from prt_guard.rules import analyze
from prt_guard.reporter import report_console, report_json, report_sarif
from prt_guard.reporter.enriched_reporter import report_enriched

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def _setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_workflows(path: str):
    """Parse a file or a directory, collecting per-file structural errors."""
    if os.path.isfile(path):
        try:
            return [parse_workflow(path)], []
        except WorkflowParseError as e:
            return [], [e]
    return parse_workflows_dir(path)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool):
    """Find pull_request_target workflows that check out untrusted PR code."""
    _setup_logging(verbose)


@cli.command()
@click.argument("path")
@click.option("--enrich", is_flag=True, help="Use Claude AI to explain findings and suggest fixes.")
@click.option("--format", "output_format", type=click.Choice(["console", "json", "sarif"]), default="console", help="Output format.")
@click.option("--config", "config_path", default=None, help="Path to .prt-guard.yml config file.")
def scan(path: str, enrich: bool, output_format: str, config_path: str):
    """Scan GitHub Actions workflow files for unsafe pull request checkouts.

    Exits with code 0 if no issues found, 1 if issues found, 2 on error.
    """
    path = os.path.abspath(path)

    if not os.path.exists(path):
        click.echo(f"Error: '{path}' is not a file or directory.", err=True)
        sys.exit(EXIT_ERROR)

    # Load config file and build detector settings
    try:
        config = load_config(config_path=config_path, scan_path=path)
        settings = config.rule_settings()
    except ConfigError as e:
        click.echo(f"Error in config: {e}", err=True)
        sys.exit(EXIT_ERROR)

    workflows, errors = _load_workflows(path)
    for e in errors:
        click.echo(f"Error: {e}", err=True)

    if not workflows and not errors:
        click.echo("No workflow files found.")
        sys.exit(EXIT_OK)

    # Apply exclude patterns from config
    if config.exclude:
        scan_root = path if os.path.isdir(path) else os.path.dirname(path)
        before = len(workflows)
        workflows = [wf for wf in workflows if not config.is_excluded(wf.file_path, scan_root)]
        excluded = before - len(workflows)
        if excluded:
            logger.info("Excluded %d workflow(s) via config", excluded)

    if not workflows and not errors:
        click.echo("All workflow files excluded by config.")
        sys.exit(EXIT_OK)

    # Run the detector on all workflows
    all_findings = []
    for wf in workflows:
        all_findings.extend(analyze(wf, settings))

    if all_findings:
        exit_code = EXIT_FINDINGS
    elif errors:
        exit_code = EXIT_ERROR
    else:
        exit_code = EXIT_OK

    if output_format == "json":
        click.echo(report_json(all_findings, errors))
        sys.exit(exit_code)
    if output_format == "sarif":
        click.echo(report_sarif(all_findings, errors))
        sys.exit(exit_code)

    if not all_findings:
        if workflows:
            click.echo("\n✅ No security issues found!")
        sys.exit(exit_code)

    # If --enrich, use Claude to add explanations
    if enrich:
        from prt_guard.llm import enrich_findings

        if not os.environ.get("ANTHROPIC_API_KEY"):
            click.echo(
                "Error: --enrich requires ANTHROPIC_API_KEY environment variable.",
                err=True,
            )
            sys.exit(EXIT_ERROR)

        by_file = defaultdict(list)
        for finding in all_findings:
            by_file[finding.file_path].append(finding)

        click.echo(f"Enriching {len(all_findings)} finding(s) with Claude AI...\n")

        try:
            enriched = []
            for file_path, findings in by_file.items():
                try:
                    with open(file_path, "r", encoding="utf-8") as f:
                        yaml_content = f.read()
                except OSError as e:
                    click.echo(f"Warning: could not read {file_path}: {e}", err=True)
                    yaml_content = ""
                # One batched request per workflow file
                enriched.extend(enrich_findings(findings, yaml_content))
        except Exception as e:
            logger.error("Claude API error: %s", e)
            click.echo(f"Error calling Claude API: {e}", err=True)
            click.echo("Falling back to standard report.\n", err=True)
            report_console(all_findings, file_path=path)
            sys.exit(EXIT_FINDINGS)

        report_enriched(enriched, file_path=path)
    else:
        report_console(all_findings, file_path=path)

    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
