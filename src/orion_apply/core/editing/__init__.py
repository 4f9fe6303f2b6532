"""Edit pipeline: dialect parsers, outcome classification, resolution and orchestration."""
