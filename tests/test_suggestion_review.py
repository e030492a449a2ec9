import itertools

import pytest

from contracts.errors import SuggestionNotFoundError
from contracts.models import PieceSuggestion
from services import suggestion_review

STATUSES = ["pending", "approved", "rejected", "refined"]


def _suggestion(status="pending", refined=None):
    return PieceSuggestion(id="s1", description="Cropped jacket", rationale="r",
                           status=status, refined_description=refined)


@pytest.mark.parametrize("before, after", list(itertools.product(STATUSES, STATUSES)))
def test_any_status_may_follow_any_other(before, after):
    refined = "Edited" if before == "refined" else None
    suggestions = [_suggestion(before, refined)]

    [updated] = suggestion_review.set_status(suggestions, "s1", after)

    assert updated.status == after
    if after == "refined":
        assert updated.refined_description
    # input untouched
    assert suggestions[0].status == before


def test_rejected_can_be_restored_to_pending():
    [restored] = suggestion_review.set_status([_suggestion("rejected")], "s1", "pending")
    assert restored.status == "pending"


@pytest.mark.parametrize("before", STATUSES)
def test_refine_forces_refined_status(before):
    refined = "Old edit" if before == "refined" else None
    [updated] = suggestion_review.refine([_suggestion(before, refined)], "s1", "Boxy suede jacket")

    assert updated.status == "refined"
    assert updated.refined_description == "Boxy suede jacket"
    assert updated.effective_description == "Boxy suede jacket"


def test_only_target_suggestion_changes():
    other = PieceSuggestion(id="s2", description="Loafers", rationale="r")
    updated = suggestion_review.set_status([_suggestion(), other], "s1", "approved")
    assert updated[1] is other


def test_unknown_id_raises():
    with pytest.raises(SuggestionNotFoundError):
        suggestion_review.set_status([_suggestion()], "nope", "approved")
    with pytest.raises(SuggestionNotFoundError):
        suggestion_review.refine([_suggestion()], "nope", "text")


def test_blank_refinement_rejected():
    with pytest.raises(ValueError):
        suggestion_review.refine([_suggestion()], "s1", "   ")
