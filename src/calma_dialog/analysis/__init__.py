"""Stateless text classifiers run over every inbound message."""

from .cognitive import CognitiveAnalysis, CognitivePatternDetector
from .emotion import EmotionAnalysis, EmotionClassifier
from .intent import Intent, IntentAnalysis, IntentClassifier, Topic, Urgency

__all__ = [
    "CognitiveAnalysis",
    "CognitivePatternDetector",
    "EmotionAnalysis",
    "EmotionClassifier",
    "Intent",
    "IntentAnalysis",
    "IntentClassifier",
    "Topic",
    "Urgency",
]
