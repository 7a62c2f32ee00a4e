import re


def normalize_word(word: str) -> str:
    """Case-folded, trimmed identity of a word."""
    return str(word).strip().lower()


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Models sometimes wrap JSON in markdown fences despite being told not to."""
    return _FENCE_RE.sub("", (text or "").strip()).strip()
