"""
EventRouter: wildcard event-name matching.

Supported Patterns
------------------
- Exact:    "guild.created"      -> only "guild.created"
- Global:   "*"                  -> any event
- Prefix:   "guild.*"            -> "guild.created", "guild.member_left", ...
- Suffix:   "*.created"          -> "guild.created", "tag.created", ...
- Sandwich: "guild.*_left"       -> "guild.member_left"

Matching is case-sensitive; repeated wildcards collapse into one.
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless wildcard matcher.

    >>> EventRouter().matches("party.disbanded", "party.*")
    True
    >>> EventRouter().matches("party.disbanded", "guild.*")
    False
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")
        prefix, suffix = parts[0], parts[-1]

        if prefix and not event_name.startswith(prefix):
            return False
        if suffix and not event_name.endswith(suffix):
            return False
        if len(prefix) + len(suffix) > len(event_name):
            return False

        # Middle pieces must appear in order between prefix and suffix.
        idx = len(prefix)
        limit = len(event_name) - len(suffix)
        for mid in parts[1:-1]:
            if not mid:
                continue
            next_idx = event_name.find(mid, idx, limit)
            if next_idx == -1:
                return False
            idx = next_idx + len(mid)

        return True
