from __future__ import annotations


def make_correlation_id(interaction_id: str | int | None, command: str | None) -> str:
    """Return an id tying verify → dispatch → llm → followup log lines together.

    Format: "<interactionId>-<command>". Missing parts collapse to "na".
    """
    return f"{interaction_id or 'na'}-{(command or 'na').lower()}"
