"""LLM access used by the retry loop."""
