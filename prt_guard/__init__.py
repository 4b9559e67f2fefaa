"""Detect unsafe pull request checkouts in 'pull_request_target' workflows."""

__version__ = "0.1.0"
