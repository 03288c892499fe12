from __future__ import annotations

import json
from typing import Any


def quote_value(value: Any) -> str:
    if value is None:
        return "NA"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    # JSON-escape so newlines and quotes in user input stay on one log line
    try:
        s = json.dumps(str(value), ensure_ascii=False)
        return s if (len(s) >= 2 and s[0] == '"') else f'"{s}"'
    except Exception:
        return f'"{str(value)}"'


def fmt(key: str, value: Any) -> str:
    return f"{key}={quote_value(value)}"


def preview(text: str | None, limit: int = 80) -> str:
    if not text:
        return ""
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."
