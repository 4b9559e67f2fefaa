from .engine import analyze, Finding, RuleSettings, DEFAULT_SETTINGS
from .guards import is_guarded, is_probable
from .triggers import is_exploitable_trigger
from .untrusted_refs import references_untrusted_ref

__all__ = [
    "analyze",
    "Finding",
    "RuleSettings",
    "DEFAULT_SETTINGS",
    "is_guarded",
    "is_probable",
    "is_exploitable_trigger",
    "references_untrusted_ref",
]

# Import all rule modules so they register themselves via @register_rule
from . import untrusted_checkout
