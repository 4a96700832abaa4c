"""User profile: stored preferences plus behavior inferred from history."""
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Literal

from forge.analysis.intent import IntentAnalysis
from forge.config.defaults import (
    PROFILE_FRAMEWORK_KEYWORDS,
    PROFILE_INTENT_KEYWORDS,
    PROFILE_STYLE_KEYWORDS,
)
from forge.orchestration.models import Message
from forge.storage.store import PREFERENCES, USERS, MemoryStore

logger = logging.getLogger(__name__)

DetailLevel = Literal["brief", "normal", "detailed"]

_COMPLEXITY_WEIGHT = {"simple": 1, "medium": 2, "complex": 3}


@dataclass(frozen=True)
class UserPreferences:
    default_provider: str | None = None
    theme: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "UserPreferences":
        return cls(
            default_provider=data.get("default_provider"),
            theme=data.get("theme"),
            extra=dict(data.get("preferences") or {}),
        )


@dataclass(frozen=True)
class HistoryStats:
    total_messages: int = 0
    common_intents: dict[str, int] = field(default_factory=dict)
    preferred_framework: str | None = None
    preferred_style: str | None = None
    average_complexity: str = "medium"


@dataclass(frozen=True)
class Behavior:
    detail_level: DetailLevel = "normal"
    prefers_code: bool = False
    prefers_explanations: bool = False


@dataclass(frozen=True)
class UserProfile:
    """Rebuilt for every request; never written back by the pipeline."""
    user_id: str
    user_name: str | None = None
    user_email: str | None = None
    preferences: UserPreferences | None = None
    history: HistoryStats = field(default_factory=HistoryStats)
    behavior: Behavior = field(default_factory=Behavior)


def _has_any(text: str, keywords: list[str]) -> bool:
    return any(re.search(r"\b" + re.escape(k), text) for k in keywords)


class UserProfileEngine:
    """Loads user records from the store and analyzes conversation history."""

    def __init__(self, store: MemoryStore | None = None):
        self.store = store

    async def load_profile(self, user_id: str | None, history: list[Message]) -> UserProfile | None:
        """Build the profile for ``user_id``. Anonymous requests get None."""
        if not user_id:
            return None

        try:
            user, prefs = await self._load_records(user_id)
        except Exception as e:
            logger.warning(f"Could not load profile for {user_id}: {e}")
            return None

        return UserProfile(
            user_id=user_id,
            user_name=(user or {}).get("full_name"),
            user_email=(user or {}).get("email"),
            preferences=UserPreferences.from_dict(prefs) if prefs else None,
            history=self.analyze_history(history),
            behavior=self.infer_behavior(history),
        )

    async def _load_records(self, user_id: str) -> tuple[dict | None, dict | None]:
        if self.store is None:
            return None, None
        return await self.store.get(USERS, user_id), await self.store.get(PREFERENCES, user_id)

    def analyze_history(self, history: list[Message]) -> HistoryStats:
        intents: Counter[str] = Counter()
        frameworks: Counter[str] = Counter()
        styles: Counter[str] = Counter()
        weights = []

        for msg in history:
            if msg.role != "user":
                continue
            text = msg.content.lower()

            for intent, keywords in PROFILE_INTENT_KEYWORDS.items():
                if _has_any(text, keywords):
                    intents[intent] += 1
            for fw, keywords in PROFILE_FRAMEWORK_KEYWORDS.items():
                if _has_any(text, keywords):
                    frameworks[fw] += 1
            for style, keywords in PROFILE_STYLE_KEYWORDS.items():
                if _has_any(text, keywords):
                    styles[style] += 1

            word_count = len(text.split())
            if word_count < 20:
                weights.append(_COMPLEXITY_WEIGHT["simple"])
            elif word_count < 100:
                weights.append(_COMPLEXITY_WEIGHT["medium"])
            else:
                weights.append(_COMPLEXITY_WEIGHT["complex"])

        avg = sum(weights) / len(weights) if weights else 2
        if avg < 1.5:
            average_complexity = "simple"
        elif avg < 2.5:
            average_complexity = "medium"
        else:
            average_complexity = "complex"

        return HistoryStats(
            total_messages=len(history),
            common_intents=dict(intents),
            preferred_framework=frameworks.most_common(1)[0][0] if frameworks else None,
            preferred_style=styles.most_common(1)[0][0] if styles else None,
            average_complexity=average_complexity,
        )

    def infer_behavior(self, history: list[Message]) -> Behavior:
        ai_messages = [m for m in history if m.role == "ai"]
        if not ai_messages:
            return Behavior()

        with_code = [m for m in ai_messages if m.code]
        has_explanations = any(len(m.content) > 100 and not m.code for m in ai_messages)
        avg_length = sum(len(m.content) for m in ai_messages) / len(ai_messages)

        detail_level: DetailLevel = "normal"
        if avg_length < 200:
            detail_level = "brief"
        elif avg_length > 1000:
            detail_level = "detailed"

        return Behavior(
            detail_level=detail_level,
            prefers_code=len(with_code) > len(ai_messages) / 2,
            prefers_explanations=has_explanations and not with_code,
        )

    def personalized_context(self, profile: UserProfile | None, intent: IntentAnalysis) -> dict[str, Any]:
        """Fallback framework/style and stored preferences for the agents."""
        if profile is None:
            return {}

        context: dict[str, Any] = {}
        if not intent.requirements.framework and profile.history.preferred_framework:
            context["framework"] = profile.history.preferred_framework
        if not intent.requirements.style and profile.history.preferred_style:
            context["style"] = profile.history.preferred_style

        if profile.behavior.detail_level == "brief":
            context["brief_mode"] = True
        elif profile.behavior.detail_level == "detailed":
            context["detailed_mode"] = True

        if profile.preferences:
            context["default_provider"] = profile.preferences.default_provider
            context["theme"] = profile.preferences.theme
            context.update(profile.preferences.extra)

        return context
