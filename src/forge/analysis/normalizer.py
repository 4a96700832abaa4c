"""Input normalization: cleaning, language detection and metadata extraction."""

import itertools
import re
from dataclasses import dataclass
from typing import Literal

from forge.config.defaults import COMMAND_VERBS, ENGLISH_KEYWORDS, INDONESIAN_KEYWORDS

Language = Literal["id", "en", "mixed"]

# Closed fence, or an unclosed fence running to the end of the text
FENCE_RE = re.compile(r"```(?:[^\n`]*\n)?(.*?)(?:```|\Z)", re.DOTALL)
URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
MENTION_RE = re.compile(r"@(\w+)")
QUESTION_RE = re.compile(r"[^.!?]*\?")
ID_HEURISTIC_RE = re.compile(r"[a-z]+\s+(yang|dengan|untuk|dari|pada|adalah)", re.IGNORECASE)

_ID_RE = re.compile(r"\b(" + "|".join(INDONESIAN_KEYWORDS) + r")\b", re.IGNORECASE)
_EN_RE = re.compile(r"\b(" + "|".join(ENGLISH_KEYWORDS) + r")\b", re.IGNORECASE)
_COMMAND_RES = [
    re.compile(r"^(" + "|".join(verbs) + r")\s+", re.IGNORECASE) for verbs in COMMAND_VERBS.values()
]


@dataclass(frozen=True)
class NormalizedInput:
    """Cleaned user input plus extracted metadata."""

    original: str
    normalized: str
    cleaned: str
    language: Language
    code_blocks: tuple[str, ...]
    urls: tuple[str, ...]
    mentions: tuple[str, ...]
    commands: tuple[str, ...]
    questions: tuple[str, ...]
    has_images: bool
    word_count: int
    char_count: int

    @property
    def has_code_blocks(self) -> bool:
        return len(self.code_blocks) > 0

    @property
    def has_urls(self) -> bool:
        return len(self.urls) > 0


def normalize(text: str, images: list[str] | None = None) -> NormalizedInput:
    """Normalize raw user input. Pure: equal inputs give equal outputs."""
    cleaned = clean_text(text)
    code_blocks = extract_code_blocks(cleaned)

    return NormalizedInput(
        original=text,
        normalized=_placeholder_code_blocks(cleaned),
        cleaned=cleaned,
        language=detect_language(cleaned),
        code_blocks=code_blocks,
        urls=tuple(URL_RE.findall(cleaned)),
        mentions=tuple(MENTION_RE.findall(cleaned)),
        commands=_extract_commands(cleaned),
        questions=tuple(q.strip() for q in QUESTION_RE.findall(cleaned)),
        has_images=bool(images),
        word_count=len(cleaned.split()),
        char_count=len(cleaned),
    )


def clean_text(text: str) -> str:
    """Normalize line endings and whitespace outside fenced code blocks."""
    text = text.replace("\r\n", "\n").replace("\r", "\n").strip()

    parts = []
    pos = 0
    for match in FENCE_RE.finditer(text):
        parts.append(_clean_prose(text[pos:match.start()]))
        parts.append(match.group(0))
        pos = match.end()
    parts.append(_clean_prose(text[pos:]))
    return "".join(parts).strip()


def _clean_prose(segment: str) -> str:
    segment = re.sub(r"\n{3,}", "\n\n", segment)
    segment = re.sub(r"[ \t]+", " ", segment)
    return re.sub(r" +$", "", segment, flags=re.MULTILINE)


def detect_language(text: str) -> Language:
    """Weighted keyword match between Indonesian and English."""
    id_hits = len(_ID_RE.findall(text))
    en_hits = len(_EN_RE.findall(text))

    if id_hits > 0 and en_hits > 0:
        return "mixed"
    if id_hits > en_hits:
        return "id"
    if en_hits > id_hits:
        return "en"
    return "id" if ID_HEURISTIC_RE.search(text) else "en"


def extract_code_blocks(text: str) -> tuple[str, ...]:
    """Contents of every fenced block, language tag removed."""
    return tuple(m.group(1).strip() for m in FENCE_RE.finditer(text))


def _extract_commands(text: str) -> tuple[str, ...]:
    commands = []
    for pattern in _COMMAND_RES:
        match = pattern.match(text)
        if match:
            commands.append(match.group(0).strip().lower())
    return tuple(commands)


def _placeholder_code_blocks(text: str) -> str:
    counter = itertools.count()
    replaced = FENCE_RE.sub(lambda _: f"[CODE_BLOCK_{next(counter)}]", text)
    return re.sub(r"\s+", " ", replaced).strip()
