"""Rule-based intent classification."""

import re
from dataclasses import dataclass, field
from typing import Literal

from forge.analysis.normalizer import NormalizedInput
from forge.config.defaults import COMPONENT_HINTS, FEATURE_HINTS, FRAMEWORK_HINTS, STYLE_HINTS
from forge.config.schema import HeuristicsConfig
from forge.orchestration.models import Message

Intent = Literal["code_generation", "question", "edit", "explanation", "debug", "refactor", "test"]
Complexity = Literal["simple", "medium", "complex"]

VALID_INTENTS = {"code_generation", "question", "edit", "explanation", "debug", "refactor", "test"}

_I = re.IGNORECASE

DEBUG_RE = re.compile(r"\b(error|bug|fix|debug|masalah|salah|tidak bekerja|not working|broken)", _I)
DEBUG_WITH_CODE_RE = re.compile(r"\b(kenapa|why|what.*wrong|how.*fix)", _I)
TEST_RE = re.compile(r"\b(tests?|testing|unit tests?|integration tests?|e2e|specs?)\b", _I)
TEST_WRITE_RE = re.compile(r"\b(buat|create|write)\b.*\btest", _I)
REFACTOR_RE = re.compile(r"\b(refactor|refactoring|improve|optimize|clean|cleanup|restructure)", _I)
REFACTOR_WITH_CODE_RE = re.compile(r"\b(perbaiki|make.*better|enhance)", _I)
QUESTION_START_RE = re.compile(
    r"^(apa|what|how|why|when|where|who|which|can|could|should|would|is|are|do|does|did|will|was|were)\s+", _I
)
PLEASE_EXPLAIN_RE = re.compile(r"^(tolong|please)\s+(jelaskan|explain|terangkan|bantu|help)", _I)
WHAT_IS_RE = re.compile(r"^(apa itu|what is|apa artinya|what does|bagaimana|how)\b", _I)
EXPLAIN_START_RE = re.compile(r"^(jelaskan|explain|terangkan|describe|tell me about)", _I)
HOW_TO_RE = re.compile(r"^(bagaimana cara|how to|how does|how can)", _I)
EDIT_START_RE = re.compile(
    r"^(ubah|edit|ganti|modify|change|update|tambah|add|hapus|remove|delete|make it|make the)\b", _I
)
EDIT_STYLE_RE = re.compile(r"^(ubah|ganti|buat|change)\s+(warna|color|style|desain|layout|background|font)", _I)
ERROR_FLAG_RE = re.compile(r"\b(error|bug|exception|failed|fail|salah|tidak bekerja)", _I)
CONJUNCTION_RE = re.compile(r"\b(dan|and|also|plus)\b", _I)
MULTI_CLAUSE_BUILD_RE = re.compile(r"\b(create|buat|build|generate)\b.*\b(with|dengan|and|dan)\b.*\b(and|dan)\b", _I)


@dataclass(frozen=True)
class ContextFlags:
    """Signals about the request's surroundings."""

    has_code: bool = False
    has_images: bool = False
    has_errors: bool = False
    is_follow_up: bool = False


@dataclass(frozen=True)
class Requirements:
    """Structured requirements extracted from the request text."""

    framework: str | None = None
    components: tuple[str, ...] = ()
    features: tuple[str, ...] = ()
    style: str | None = None


@dataclass(frozen=True)
class SecondaryIntent:
    intent: str
    confidence: float


@dataclass(frozen=True)
class IntentAnalysis:
    """Classified intent with confidence, flags and requirements."""

    primary_intent: Intent
    confidence: float
    secondary_intents: tuple[SecondaryIntent, ...] = ()
    context: ContextFlags = field(default_factory=ContextFlags)
    requirements: Requirements = field(default_factory=Requirements)
    complexity: Complexity = "medium"


class IntentAnalyzer:
    """Classifies normalized input with ordered rules.

    Rules are checked debug, test, refactor, question, explanation, edit and
    the first match wins; anything else is code generation.
    """

    def __init__(self, heuristics: HeuristicsConfig | None = None):
        self.heuristics = heuristics or HeuristicsConfig()

    def analyze(
        self,
        normalized: NormalizedInput,
        history: list[Message] | None = None,
        framework: str | None = None,
    ) -> IntentAnalysis:
        history = history or []
        primary = self._detect_primary_intent(normalized, history)
        context = self._analyze_context(normalized, history)

        return IntentAnalysis(
            primary_intent=primary,
            confidence=self._calculate_confidence(normalized, primary),
            secondary_intents=self._detect_secondary_intents(normalized),
            context=context,
            requirements=self._extract_requirements(normalized, framework),
            complexity=request_complexity(normalized, context, self.heuristics),
        )

    def _detect_primary_intent(self, normalized: NormalizedInput, history: list[Message]) -> Intent:
        text = normalized.normalized.lower()
        has_code = normalized.has_code_blocks or any(msg.code for msg in history)
        has_questions = len(normalized.questions) > 0

        if DEBUG_RE.search(text) or (has_code and DEBUG_WITH_CODE_RE.search(text)):
            return "debug"

        if TEST_RE.search(text) or TEST_WRITE_RE.search(text):
            return "test"

        if REFACTOR_RE.search(text) or (has_code and REFACTOR_WITH_CODE_RE.search(text)):
            return "refactor"

        if (
            has_questions
            or QUESTION_START_RE.search(text)
            or PLEASE_EXPLAIN_RE.search(text)
            or WHAT_IS_RE.search(text)
        ):
            return "question"

        if EXPLAIN_START_RE.search(text) or HOW_TO_RE.search(text):
            return "explanation"

        if EDIT_START_RE.search(text) or EDIT_STYLE_RE.search(text) or (has_code and not has_questions):
            return "edit"

        return "code_generation"

    def _calculate_confidence(self, normalized: NormalizedInput, intent: Intent) -> float:
        confidence = 0.5
        text = normalized.normalized.lower()
        has_questions = len(normalized.questions) > 0

        if intent == "debug":
            if re.search(r"(error|bug|fix|broken)", text):
                confidence += 0.3
            if normalized.has_code_blocks:
                confidence += 0.2
        elif intent == "test":
            if "test" in text:
                confidence += 0.4
        elif intent == "refactor":
            if re.search(r"(refactor|optimize|improve)", text):
                confidence += 0.3
            if normalized.has_code_blocks:
                confidence += 0.2
        elif intent == "question":
            if has_questions:
                confidence += 0.3
            if "?" in text:
                confidence += 0.2
        elif intent == "explanation":
            if re.search(r"(jelaskan|explain|how to)", text):
                confidence += 0.4
        elif intent == "edit":
            if re.search(r"(ubah|edit|change|modify)", text):
                confidence += 0.3
            if normalized.has_code_blocks:
                confidence += 0.2
        else:
            if re.search(r"(buat|create|generate|build|make)", text):
                confidence += 0.3
            if not has_questions:
                confidence += 0.2

        if 5 <= normalized.word_count <= 200:
            confidence += 0.1

        return round(min(1.0, max(0.0, confidence)), 2)

    def _detect_secondary_intents(self, normalized: NormalizedInput) -> tuple[SecondaryIntent, ...]:
        text = normalized.normalized.lower()
        if not CONJUNCTION_RE.search(text):
            return ()

        intents = []
        if re.search(r"\b(test|testing)\b", text):
            intents.append(SecondaryIntent("test", 0.3))
        if re.search(r"\b(optimize|improve|refactor)", text):
            intents.append(SecondaryIntent("refactor", 0.3))
        return tuple(intents)

    def _analyze_context(self, normalized: NormalizedInput, history: list[Message]) -> ContextFlags:
        return ContextFlags(
            has_code=normalized.has_code_blocks
            or any(msg.role == "ai" and msg.code and msg.code.strip() for msg in history),
            has_images=normalized.has_images or any(msg.images for msg in history),
            has_errors=bool(ERROR_FLAG_RE.search(normalized.normalized)),
            is_follow_up=bool(history) and history[-1].role == "ai",
        )

    def _extract_requirements(self, normalized: NormalizedInput, framework: str | None) -> Requirements:
        text = normalized.normalized.lower()

        detected_framework = None
        for hint, fw in FRAMEWORK_HINTS.items():
            if _contains_word(text, hint):
                detected_framework = fw
                break

        style = None
        for style_name, keywords in STYLE_HINTS.items():
            if any(_contains_word(text, keyword) for keyword in keywords):
                style = style_name
                break

        return Requirements(
            framework=detected_framework or framework,
            components=tuple(c for c in COMPONENT_HINTS if _contains_word(text, c, plural=True)),
            features=tuple(f for f in FEATURE_HINTS if _contains_word(text, f, plural=True)),
            style=style,
        )


def _contains_word(text: str, word: str, plural: bool = False) -> bool:
    suffix = r"s?\b" if plural else r"\b"
    return re.search(r"\b" + re.escape(word) + suffix, text) is not None


def request_complexity(
    normalized: NormalizedInput,
    context: ContextFlags,
    heuristics: HeuristicsConfig,
) -> Complexity:
    """Complexity of the request text itself, as seen by the planner.

    Separate from the decision engine's routing complexity, which looks only
    at extracted requirements.
    """
    text = normalized.cleaned
    words = text.split()
    keywords = {k.lower() for k in heuristics.simple_request_keywords}

    if (
        len(text) < heuristics.simple_request_max_length
        or any(w.strip(".,!?").lower() in keywords for w in words)
        or (len(words) < 10 and not context.has_code and not context.has_images)
    ):
        return "simple"

    if (
        len(text) > 500
        or len(words) > 100
        or (context.has_code and context.has_images)
        or len(re.findall(r"\bdan\b", text, _I)) > 2
        or MULTI_CLAUSE_BUILD_RE.search(text)
    ):
        return "complex"

    return "medium"
