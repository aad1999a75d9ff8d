"""
Intent resolution: fuzzy keyword matching and command routing.
"""

from netra.intent.fuzzy import distance, matches, matches_any, normalize_name
from netra.intent.router import CommandIntent, CommandRouter, IntentKind, Vocabulary

__all__ = [
    "CommandIntent",
    "CommandRouter",
    "IntentKind",
    "Vocabulary",
    "distance",
    "matches",
    "matches_any",
    "normalize_name",
]
