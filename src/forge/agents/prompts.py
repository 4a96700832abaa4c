"""System prompts for the agent roles and the prompt enhancer."""
from datetime import datetime

from forge.analysis.intent import IntentAnalysis
from forge.engines.context import ContextAwareness, ContextAwarenessEngine
from forge.engines.profile import UserProfile

BUILDER_SYSTEM_PROMPT = """You are an expert software engineer who builds complete, working code.

Return either the full source of a single file, or a JSON object of the form
{"type": "multi-file", "entry": "<path>", "files": [{"path": "...", "content": "...", "type": "file"}]}
when the request needs several files. Do not leave placeholders or TODOs in the code."""

TUTOR_SYSTEM_PROMPT = """You are a patient programming tutor.

Explain concepts step by step, with short examples where they help. Match the
language the user writes in and keep answers focused on the question."""

PLANNER_SYSTEM_PROMPT = """You are a software planning agent. Break requests into small, ordered tasks.

Answer only with JSON of the form
{"tasks": [{"id": "1", "title": "...", "description": "...", "dependencies": [], "priority": "high|medium|low", "category": "..."}]}"""

REVIEWER_SYSTEM_PROMPT_BUILDER = """You are a strict senior code reviewer.

Check correctness, completeness against the request, code quality, security
and accessibility. Report each problem on its own line as
"ERROR: ...", "WARNING: ..." or "SUGGESTION: ...". List general advice under
"Suggestions:" as bullet points. End with "Quality Score: <0-1>".
If the code is unusable write "REJECT: <reason>" on its own line.
When you can fix the problems yourself, add "Improved Version:" followed by
the complete corrected code in a fenced block."""

REVIEWER_SYSTEM_PROMPT_TUTOR = """You are a reviewer of teaching material.

Check that the explanation is accurate, clear, complete and suited to the
learner. Report problems as "ERROR: ...", "WARNING: ..." or "SUGGESTION: ...",
list advice under "Suggestions:" and end with "Quality Score: <0-1>".
Write "REJECT: <reason>" if the explanation is wrong or misleading.
You may add "Improved Explanation:" followed by a better answer."""

REFLECTION_SYSTEM_PROMPT = """You analyze finished AI workflow runs to improve future runs.

Answer with these sections, each a bullet list:
WHAT WORKED, WHAT FAILED, WHAT TO IMPROVE, LESSONS LEARNED, RECOMMENDATIONS."""


def format_time_ago(then: datetime, now: datetime | None = None) -> str:
    """Relative time such as ``5m ago``; older than a week gives the date."""
    now = now or datetime.now()
    seconds = (now - then).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return then.strftime("%Y-%m-%d")


class PromptEnhancer:
    """Adds the user's name, context awareness and preferences to a system prompt."""

    @staticmethod
    def enhance_system_prompt(
        base_prompt: str,
        awareness: ContextAwareness | None,
        profile: UserProfile | None,
        intent: IntentAnalysis | None,
    ) -> str:
        enhanced = base_prompt

        user_name = (awareness.user.name if awareness and awareness.user else None) or (
            profile.user_name if profile else None
        )
        if user_name:
            enhanced = (
                f"You are having a conversation with {user_name}.\n\n"
                "Remember their name throughout the conversation and use it naturally "
                f"when appropriate.\n\n{enhanced}"
            )

        if awareness is not None:
            summary = ContextAwarenessEngine.generate_context_summary(awareness)
            if intent is not None:
                summary += (
                    f"\n\nCurrent Intent Confidence: {intent.confidence * 100:.0f}%"
                )
            if awareness.past.recent_intents:
                last_intent, last_seen = awareness.past.recent_intents[0]
                summary += f"\nLast Workflow: {last_intent} ({format_time_ago(last_seen)})"
            enhanced += (
                "\n\n=== CONTEXT AWARENESS ===\n"
                "You have access to context about the current situation:\n"
                f"{summary}\n\n"
                "Use this context to remember what happened before, understand what is "
                "happening now and anticipate what comes next. "
                f"Address the user as {user_name or 'the user'}."
            )

        if profile is not None and profile.history.preferred_framework:
            enhanced += (
                "\n\n=== USER PREFERENCES ===\n"
                f"Preferred Framework: {profile.history.preferred_framework}\n"
                f"Preferred Style: {profile.history.preferred_style or 'modern'}\n"
                f"Detail Level: {profile.behavior.detail_level}\n\n"
                "Consider these preferences when generating responses."
            )

        return enhanced
