# contentbot/services/markdown.py
import re
import unicodedata
from typing import Optional


def slugify(text: str, max_length: int = 80) -> str:
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode()
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text.lower()).strip("-")
    return text[:max_length].rstrip("-")


def ensure_single_intro(content: str, intro: Optional[str]) -> str:
    """Put `intro` directly under the H1 unless the article already contains it."""
    if not intro or not intro.strip():
        return content
    intro = intro.strip()
    if intro in content:
        return content
    lines = content.split("\n")
    for idx, line in enumerate(lines):
        if line.startswith("# "):
            rest = lines[idx + 1:]
            while rest and not rest[0].strip():
                rest.pop(0)
            return "\n".join(lines[:idx + 1] + ["", intro, ""] + rest)
    return f"{intro}\n\n{content}"
