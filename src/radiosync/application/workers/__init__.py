"""Per-feed runtime: change detection, stream connectors and the orchestrator."""
