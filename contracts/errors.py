# contracts/errors.py
"""
Exception hierarchy for the recommendation core.
"""


class RecommendationError(Exception):
    """Base class for all recommendation core errors."""


class ReasoningModelError(RecommendationError):
    """The reasoning model call failed or returned nothing usable."""


class SchemaValidationError(ReasoningModelError):
    """The reasoning model answered, but not in the expected shape."""


class GenerationError(RecommendationError):
    """Suggestion generation failed (model call or schema mismatch)."""


class SearchError(RecommendationError):
    """Product search failed at the model call."""


class SessionStateError(RecommendationError):
    """An action was invoked from a session state that does not allow it."""


class SuggestionNotFoundError(RecommendationError):
    """The referenced suggestion id is not part of the session."""


class PreferencesNotLoadedError(RecommendationError):
    """Preferences must be loaded before they can be used or mutated."""
