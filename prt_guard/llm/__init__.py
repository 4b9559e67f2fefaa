from .claude_client import enrich_findings, EnrichedFinding

__all__ = ["enrich_findings", "EnrichedFinding"]
