"""
aico-review

Gatekeeper for pending code changes: segments a diff, reviews it with an
AI oracle under bounded concurrency, merges team-rule violations and renders
CI-ready reports.
"""

__version__ = "1.1.0"
