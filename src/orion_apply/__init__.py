"""
Orion Apply: turns LLM edit replies into safe file changes.

Edits are classified with a dry run first, ambiguous matches are
auto-resolved where the counts line up, and leftovers go to a retry
round with the model, an interactive repair session, or a hard failure.
"""

__version__ = "7.5.0"
__author__ = "Orion Team"
