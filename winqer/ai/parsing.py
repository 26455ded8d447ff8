"""WINQER — Parsing of model replies."""

import json
import re
from typing import Any, Dict, Optional

_OBJECT = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(text: str) -> str:
    clean = text.strip()
    if clean.startswith("```"):
        clean = clean.split("\n", 1)[1] if "\n" in clean else clean[3:]
        if clean.endswith("```"):
            clean = clean[:-3]
    return clean.strip()


def parse_json_response(text: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object out of a model reply.

    Handles markdown fences and prose around the object. Returns None
    when no object can be recovered.
    """
    if not text:
        return None
    clean = strip_code_fences(text)
    try:
        parsed = json.loads(clean)
    except json.JSONDecodeError:
        match = _OBJECT.search(clean)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None
