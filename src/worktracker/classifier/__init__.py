"""Screenshot classifiers for worktracker.

Public API:
    Classifier -- Abstract base class
    ClassifierError -- Raised when classification fails
    OpenAIClassifier -- OpenAI-compatible vision classifier
"""

from worktracker.classifier.base import Classifier, ClassifierError

__all__ = ["Classifier", "ClassifierError", "OpenAIClassifier"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "OpenAIClassifier":
        from worktracker.classifier.openai import OpenAIClassifier
        return OpenAIClassifier
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
