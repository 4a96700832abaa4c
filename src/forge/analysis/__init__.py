"""Request analysis: normalization and intent classification."""
from forge.analysis.intent import IntentAnalysis, IntentAnalyzer, request_complexity
from forge.analysis.normalizer import NormalizedInput, normalize

__all__ = ["IntentAnalysis", "IntentAnalyzer", "NormalizedInput", "normalize", "request_complexity"]
