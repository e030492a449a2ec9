# services/suggestion_review.py
"""
Suggestion Review Tracker.

Pure functions over a suggestion list. Any status may follow any other
(rejected -> pending is the "restore" action). Refining always forces the
``refined`` status. Inputs are never mutated; callers persist the result.
"""
from typing import List, get_args

from contracts.errors import SuggestionNotFoundError
from contracts.models import PieceSuggestion, SuggestionStatus


def _find(suggestions: List[PieceSuggestion], suggestion_id: str) -> PieceSuggestion:
    for suggestion in suggestions:
        if suggestion.id == suggestion_id:
            return suggestion
    raise SuggestionNotFoundError(f"Unknown suggestion: {suggestion_id}")


def _replace(suggestions: List[PieceSuggestion], suggestion_id: str, **update) -> List[PieceSuggestion]:
    return [s.model_copy(update=update) if s.id == suggestion_id else s for s in suggestions]


def set_status(suggestions: List[PieceSuggestion], suggestion_id: str, status: SuggestionStatus) -> List[PieceSuggestion]:
    if status not in get_args(SuggestionStatus):
        raise ValueError(f"Unknown suggestion status: {status}")
    target = _find(suggestions, suggestion_id)

    update = {"status": status}
    if status == "refined" and not target.refined_description:
        # refined always carries a refined description; start from the original text
        update["refined_description"] = target.description
    return _replace(suggestions, suggestion_id, **update)


def refine(suggestions: List[PieceSuggestion], suggestion_id: str, new_description: str) -> List[PieceSuggestion]:
    if not new_description.strip():
        raise ValueError("Refined description cannot be blank")
    _find(suggestions, suggestion_id)
    return _replace(suggestions, suggestion_id, refined_description=new_description, status="refined")
