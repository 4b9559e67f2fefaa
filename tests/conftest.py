"""Shared fixtures for all tests."""

import os
import pytest

from prt_guard.parser import parse_workflow
from prt_guard.rules import analyze


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures/.github/workflows")


@pytest.fixture
def refs_workflow_path():
    """Path to the nine-job pull_request_target fixture."""
    return os.path.join(FIXTURES_DIR, "pr-target-refs.yml")


@pytest.fixture
def refs_workflow(refs_workflow_path):
    """Parsed nine-job pull_request_target fixture."""
    return parse_workflow(refs_workflow_path)


@pytest.fixture
def refs_findings(refs_workflow):
    """All findings from the nine-job fixture."""
    return analyze(refs_workflow)


@pytest.fixture
def guarded_workflow():
    """Parsed fixture whose checkouts are guarded at job or step level."""
    return parse_workflow(os.path.join(FIXTURES_DIR, "guarded-checkout.yml"))


@pytest.fixture
def fixtures_dir():
    """Path to the fixtures workflow directory."""
    return FIXTURES_DIR
