"""
Configuration file support for prt-guard.

Looks for a .prt-guard.yml file in the project root and loads settings
that tune the detector and exclude workflow files from the scan.

Example .prt-guard.yml:

    # Privileged trigger to look for
    trigger: pull_request_target

    # Action identifier (owner/repo) treated as a checkout
    checkout_action: actions/checkout

    # Values that point at the pull request's head (substring match)
    untrusted_refs:
      - github.event.pull_request.head.sha
      - github.head_ref

    # Regular expressions that make an `if:` condition an authorization guard
    guard_patterns:
      - '\\bgithub\\s*\\.\\s*actor\\s*=='

    # Workflow files to exclude. Each glob is tried against the absolute
    # path and against the path relative to this file's directory and to
    # the scanned directory.
    exclude:
      - "**/test-*.yml"
      - ".github/workflows/legacy.yml"

Keys that are left out keep their built-in defaults.
"""

import fnmatch
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from prt_guard.rules.engine import CHECKOUT_ACTION, RuleSettings
from prt_guard.rules.guards import GUARD_PATTERN_SOURCES, compile_guard_patterns
from prt_guard.rules.triggers import PRIVILEGED_TRIGGER
from prt_guard.rules.untrusted_refs import REF_PARAMETER, UNTRUSTED_REFS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".prt-guard.yml"


class ConfigError(ValueError):
    """The config file has a value the detector cannot use."""


@dataclass
class Config:
    """Parsed prt-guard configuration."""
    trigger: str = PRIVILEGED_TRIGGER
    checkout_action: str = CHECKOUT_ACTION
    ref_parameter: str = REF_PARAMETER
    untrusted_refs: list[str] = field(default_factory=lambda: list(UNTRUSTED_REFS))
    guard_patterns: list[str] = field(default_factory=lambda: list(GUARD_PATTERN_SOURCES))
    exclude: list[str] = field(default_factory=list)
    base_dir: Optional[str] = None  # directory of the loaded config file

    def rule_settings(self) -> RuleSettings:
        """Build the detector settings, compiling the guard patterns."""
        try:
            patterns = compile_guard_patterns(self.guard_patterns)
        except re.error as e:
            raise ConfigError(f"Invalid guard pattern: {e}") from e
        return RuleSettings(
            trigger=self.trigger,
            checkout_action=self.checkout_action,
            ref_parameter=self.ref_parameter,
            untrusted_refs=tuple(self.untrusted_refs),
            guard_patterns=patterns,
        )

    def is_excluded(self, file_path: str, scan_root: Optional[str] = None) -> bool:
        """Return True if any exclude glob matches the workflow file."""
        if not self.exclude:
            return False
        file_path = os.path.abspath(file_path)
        candidates = [file_path]
        for root in (self.base_dir, scan_root):
            if not root:
                continue
            rel = os.path.relpath(file_path, os.path.abspath(root))
            if rel != os.pardir and not rel.startswith(os.pardir + os.sep):
                candidates.append(Path(rel).as_posix())
        return any(
            fnmatch.fnmatch(candidate, pat)
            for candidate in candidates
            for pat in self.exclude
        )


def _string_list(raw: dict[str, Any], key: str, default: list[str]) -> list[str]:
    value = raw.get(key)
    if value is None:
        return list(default)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return value


def _string(raw: dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{key}' must be a non-empty string")
    return value


def load_config(config_path: Optional[str] = None, scan_path: Optional[str] = None) -> Config:
    """
    Load configuration from a .prt-guard.yml file.

    Search order:
      1. Explicit config_path if provided
      2. .prt-guard.yml in the scan_path directory (or its parent if scan_path is a file)
      3. .prt-guard.yml in the current working directory

    Returns a Config with defaults if no config file is found.

    Raises:
        ConfigError: If a known key has the wrong type.
    """
    path = _find_config_file(config_path, scan_path)

    if path is None:
        logger.debug("No config file found, using defaults")
        return Config()

    logger.info("Loading config from %s", path)

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        logger.warning("Config file is not a YAML mapping, using defaults")
        return Config()

    return Config(
        trigger=_string(raw, "trigger", PRIVILEGED_TRIGGER),
        checkout_action=_string(raw, "checkout_action", CHECKOUT_ACTION),
        ref_parameter=_string(raw, "ref_parameter", REF_PARAMETER),
        untrusted_refs=_string_list(raw, "untrusted_refs", list(UNTRUSTED_REFS)),
        guard_patterns=_string_list(raw, "guard_patterns", list(GUARD_PATTERN_SOURCES)),
        exclude=_string_list(raw, "exclude", []),
        base_dir=os.path.dirname(os.path.abspath(path)),
    )


def _find_config_file(
    config_path: Optional[str] = None,
    scan_path: Optional[str] = None,
) -> Optional[str]:
    """Find the config file, returning its path or None."""
    # 1. Explicit path
    if config_path:
        p = Path(config_path)
        if p.is_file():
            return str(p)
        logger.warning("Config file not found: %s", config_path)
        return None

    # 2. Relative to scan path
    if scan_path:
        scan_p = Path(scan_path)
        if scan_p.is_file():
            scan_p = scan_p.parent
        candidate = scan_p / DEFAULT_CONFIG_FILENAME
        if candidate.is_file():
            return str(candidate)
        # Walk up to find it (e.g. scan_path is .github/workflows/)
        for parent in scan_p.parents:
            candidate = parent / DEFAULT_CONFIG_FILENAME
            if candidate.is_file():
                return str(candidate)

    # 3. Current working directory
    cwd_candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
    if cwd_candidate.is_file():
        return str(cwd_candidate)

    return None
