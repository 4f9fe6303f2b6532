"""Core engine: logging, configuration, editing pipeline and LLM access."""
