import json
import re

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

STATUS_LABELS = {
    "safe": "SAFE",
    "avoid": "AVOID",
    "maybe": "UNSURE",
}

# Traffic-light colours for the terminal report
STATUS_COLOURS = {
    "safe": "\033[92m",
    "avoid": "\033[91m",
    "maybe": "\033[93m",
}
_RESET = "\033[0m"


def extract_json(raw):
    """
    Parses a model reply into a dict.
    Falls back to the first {...} block when the reply wraps the JSON in prose
    or a markdown fence. Returns None when nothing usable is found.
    """
    if not raw:
        return None
    if isinstance(raw, dict):
        return raw
    text = str(raw)
    try:
        parsed = json.loads(text)
    except (ValueError, TypeError):
        parsed = None
        m = _JSON_BLOCK.search(text)
        if m:
            try:
                parsed = json.loads(m.group(0))
            except ValueError:
                parsed = None
    return parsed if isinstance(parsed, dict) else None


def clip(text, limit: int = 300) -> str:
    text = str(text or "").strip()
    return text if len(text) <= limit else text[:limit]


def status_badge(status, colour: bool = False) -> str:
    label = STATUS_LABELS.get(status, "NOTHING YET")
    if colour and status in STATUS_COLOURS:
        return f"{STATUS_COLOURS[status]}{label}{_RESET}"
    return label
