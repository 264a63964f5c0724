"""Debounced multi-catalog search."""

from .orchestrator import (
    DEFAULT_DEBOUNCE_SECONDS,
    SearchOrchestrator,
    SearchPhase,
    SearchResults,
    SearchSession,
    merge_results,
)

__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "SearchOrchestrator",
    "SearchPhase",
    "SearchResults",
    "SearchSession",
    "merge_results",
]
