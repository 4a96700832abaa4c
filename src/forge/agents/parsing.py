"""Structured decoding of free-text model output.

Every decoder either returns a fully-formed object or raises a ParseError
subclass; callers map the error to their documented default.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from forge.orchestration.models import (
    ExecutionResult,
    GeneratedFile,
    PlanTask,
    ReviewIssue,
    ReviewResult,
    SelfReflectionResult,
)

DEFAULT_REVIEW_SCORE = 0.8
AUTO_REJECT_BELOW = 0.6
MIN_REFLECTION_ITEM = 10
VALID_PRIORITIES = {"high", "medium", "low"}


class ParseError(Exception):
    """Model output could not be decoded into the expected structure."""

    pass


class PlanParseError(ParseError):
    pass


class ReviewParseError(ParseError):
    pass


class ReflectionParseError(ParseError):
    pass


def extract_json(content: str) -> str:
    """Strip a markdown fence wrapping a JSON payload."""
    content = content.strip()

    if content.startswith("```"):
        first_newline = content.find("\n")
        if first_newline != -1:
            last_fence = content.rfind("```")
            if last_fence > first_newline:
                content = content[first_newline + 1 : last_fence].strip()

    return content


def _load_json(content: str) -> Any:
    try:
        return json.loads(extract_json(content))
    except json.JSONDecodeError:
        return None


# --- plans ---


def decode_plan_tasks(content: str) -> list[PlanTask]:
    """Decode ``{"tasks": [...]}`` (or a bare task list) into PlanTasks.

    Raises:
        PlanParseError: If no valid task can be read
    """
    data = _load_json(content)
    if data is None:
        raise PlanParseError("Plan response is not valid JSON")

    raw_tasks = data.get("tasks") if isinstance(data, dict) else data
    if not isinstance(raw_tasks, list):
        raise PlanParseError(f"Expected a task list, got {type(raw_tasks).__name__}")

    tasks = []
    for index, raw in enumerate(raw_tasks, 1):
        if not isinstance(raw, dict):
            continue
        title = str(raw.get("title") or "").strip()
        if not title:
            continue
        deps = raw.get("dependencies") or []
        priority = str(raw.get("priority") or "medium").lower()
        tasks.append(
            PlanTask(
                id=str(raw.get("id") or index),
                title=title,
                description=str(raw.get("description") or ""),
                dependencies=[str(d) for d in deps] if isinstance(deps, list) else [],
                priority=priority if priority in VALID_PRIORITIES else "medium",
                category=str(raw.get("category") or "general"),
            )
        )

    if not tasks:
        raise PlanParseError("Plan response contains no usable tasks")
    return tasks


# --- executor artifacts ---


@dataclass
class DecodedArtifact:
    content: str
    files: list[GeneratedFile] = field(default_factory=list)
    entry: str | None = None


def decode_artifact(content: str) -> DecodedArtifact:
    """Read a JSON single-file or multi-file response. Anything else is raw text."""
    data = _load_json(content)
    if not isinstance(data, dict):
        return DecodedArtifact(content=content)

    if data.get("type") == "multi-file" and isinstance(data.get("files"), list):
        files = [
            GeneratedFile(
                path=str(f.get("path", "")),
                content=str(f.get("content", "")),
                type=str(f.get("type", "file")),
            )
            for f in data["files"]
            if isinstance(f, dict)
        ]
        entry = data.get("entry")
        entry_file = next((f for f in files if f.path == entry), None)
        main = entry_file or (files[0] if files else None)
        return DecodedArtifact(content=main.content if main else "", files=files, entry=entry)

    if isinstance(data.get("content"), str):
        return DecodedArtifact(content=data["content"])

    return DecodedArtifact(content=content)


# --- reviews ---

_I = re.IGNORECASE

REJECT_RE = re.compile(r"\bREJECT\b\s*:?\s*(.+)")
QUALITY_SCORE_RE = re.compile(r"quality\s*score\s*[:=]?\s*([0-9]*\.?[0-9]+)\s*(%|/\s*100\b|/\s*10\b)?", _I)
SCORE_RE = re.compile(r"\bscore\s*[:=]?\s*([0-9]*\.?[0-9]+)\s*(%|/\s*100\b|/\s*10\b)?", _I)
ISSUE_RE = re.compile(
    r"^\s*(?:[-*•]\s*|\d+[.)]\s*)?\[?(error|warning|suggestion)\]?\s*[:\-]\s*(.+?)\s*$", _I | re.MULTILINE
)
EMOJI_ISSUE_RE = re.compile(r"(❌|⚠️|💡)\s*(.+?)\s*$", re.MULTILINE)
SUGGESTIONS_RE = re.compile(r"suggestions?\s*:?[ \t]*\n((?:[ \t]*[-•*][ \t]*.+(?:\n|$))+)", _I)
IMPROVED_FENCED_RE = re.compile(
    r"improved\s*(?:version|code|explanation)?\s*:?\s*\n?```[^\n]*\n(.*?)```", _I | re.DOTALL
)
IMPROVED_PLAIN_RE = re.compile(
    r"improved\s*(?:version|code|explanation)?\s*:[ \t]*\n(.+?)(?=\n\n|\nquality|\nscore|\Z)", _I | re.DOTALL
)

_EMOJI_SEVERITY = {"❌": "error", "⚠️": "warning", "💡": "suggestion"}


def _read_score(match: re.Match) -> float | None:
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    scale = (match.group(2) or "").replace(" ", "")
    if scale in ("%", "/100"):
        value /= 100
    elif scale == "/10":
        value /= 10
    return min(1.0, max(0.0, value))


def decode_review(content: str, execution_result: ExecutionResult) -> ReviewResult:
    """Decode a free-text critique.

    A score below 0.6 forces rejection even without an explicit marker.

    Raises:
        ReviewParseError: If the critique is empty
    """
    if not content or not content.strip():
        raise ReviewParseError("Empty review response")

    rejected = False
    rejection_reason = None
    reject_match = REJECT_RE.search(content)
    if reject_match:
        rejected = True
        rejection_reason = reject_match.group(1).strip()

    quality_score = DEFAULT_REVIEW_SCORE
    for pattern in (QUALITY_SCORE_RE, SCORE_RE):
        match = pattern.search(content)
        if match:
            score = _read_score(match)
            if score is not None:
                quality_score = score
                break

    if quality_score < AUTO_REJECT_BELOW and not rejected:
        rejected = True
        rejection_reason = f"Quality score too low ({quality_score})"

    issues = [
        ReviewIssue(severity=m.group(1).lower(), message=m.group(2))
        for m in ISSUE_RE.finditer(content)
    ]
    issues.extend(
        ReviewIssue(severity=_EMOJI_SEVERITY[m.group(1)], message=m.group(2))
        for m in EMOJI_ISSUE_RE.finditer(content)
    )

    suggestions = []
    suggestions_match = SUGGESTIONS_RE.search(content)
    if suggestions_match:
        for line in suggestions_match.group(1).splitlines():
            cleaned = re.sub(r"^\s*[-•*]\s*", "", line).strip()
            if cleaned:
                suggestions.append(cleaned)

    improved = None
    improved_match = IMPROVED_FENCED_RE.search(content) or IMPROVED_PLAIN_RE.search(content)
    if improved_match:
        improved = improved_match.group(1).strip() or None

    improved_code = improved_explanation = None
    if improved:
        if execution_result.code or execution_result.files:
            improved_code = improved
        elif execution_result.explanation:
            improved_explanation = improved

    return ReviewResult(
        quality_score=quality_score,
        issues=issues,
        suggestions=suggestions,
        improved_code=improved_code,
        improved_explanation=improved_explanation,
        rejected=rejected,
        rejection_reason=rejection_reason,
    )


# --- reflections ---

SECTION_RE = re.compile(
    r"^[ \t]*(?:#+[ \t]*|\d+[.)][ \t]*|\*\*)?[ \t]*"
    r"(what worked|what failed|what to improve|lessons learned|recommendations)\b[^\n]*$",
    _I | re.MULTILINE,
)
_SECTION_FIELDS = {
    "what worked": "what_worked",
    "what failed": "what_failed",
    "what to improve": "what_to_improve",
    "lessons learned": "lessons_learned",
    "recommendations": "recommendations",
}
_SCORED_SECTIONS = ("what_worked", "what_failed", "what_to_improve", "lessons_learned")
_FALLBACK_KEYWORDS = (
    ("what_worked", ("work", "success", "good", "well")),
    ("what_failed", ("fail", "error", "issue", "problem")),
    ("what_to_improve", ("improve", "better", "optimize", "enhance")),
    ("lessons_learned", ("learn", "insight", "lesson")),
)
_DEFAULTS = {
    "what_worked": "Execution completed successfully",
    "what_failed": "No critical failures identified",
    "what_to_improve": "Continue monitoring and optimizing",
    "lessons_learned": "Workflow executed as expected",
    "recommendations": "Maintain current quality standards",
}


def default_reflection(quality_score: float) -> SelfReflectionResult:
    return SelfReflectionResult(
        **{name: [text] for name, text in _DEFAULTS.items()},
        quality_score=quality_score,
        confidence=0.0,
    )


def _items(block: str) -> list[str]:
    items = []
    for line in block.splitlines():
        cleaned = re.sub(r"^\s*(?:[-•*]|\d+[.)])\s*", "", line).strip().strip("*").strip()
        if len(cleaned) > MIN_REFLECTION_ITEM:
            items.append(cleaned)
    return items


def decode_reflection(content: str, quality_score: float) -> SelfReflectionResult:
    """Decode a sectioned reflection; missing sections get default items.

    Raises:
        ReflectionParseError: If the reflection is empty
    """
    if not content or not content.strip():
        raise ReflectionParseError("Empty reflection response")

    sections: dict[str, list[str]] = {name: [] for name in _SECTION_FIELDS.values()}
    headers = list(SECTION_RE.finditer(content))
    for i, header in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(content)
        name = _SECTION_FIELDS[header.group(1).lower()]
        sections[name].extend(_items(content[header.end():end]))

    confidence = 0.25 * sum(1 for name in _SCORED_SECTIONS if sections[name])

    if not (sections["what_worked"] or sections["what_failed"] or sections["what_to_improve"]):
        for item in re.split(r"\n\s*(?:\d+[.)]|[-•*])\s*", content):
            item = item.strip()
            if not 20 < len(item) < 500:
                continue
            lower = item.lower()
            for name, keywords in _FALLBACK_KEYWORDS:
                if any(k in lower for k in keywords):
                    sections[name].append(item)
                    break

    return SelfReflectionResult(
        what_worked=sections["what_worked"] or [_DEFAULTS["what_worked"]],
        what_failed=sections["what_failed"] or [_DEFAULTS["what_failed"]],
        what_to_improve=sections["what_to_improve"] or [_DEFAULTS["what_to_improve"]],
        lessons_learned=sections["lessons_learned"] or [_DEFAULTS["lessons_learned"]],
        recommendations=sections["recommendations"] or [_DEFAULTS["recommendations"]],
        quality_score=quality_score,
        confidence=min(1.0, confidence),
    )
