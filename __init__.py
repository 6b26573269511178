"""
Smart Calendar - scheduling and persona engine

This package provides the engine behind a natural-language calendar assistant:
- Conflict detection and free-slot search
- Persona-aware scoring of candidate meeting times
- Non-destructive schedule adjustment proposals
- Reversible changesets over a local SQLite calendar or Google Calendar
"""

__version__ = "1.0.0"
__author__ = "Smart Calendar Team"
