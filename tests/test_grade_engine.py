import os
import sys

import pytest

# Ensure project root is on sys.path so tests can import utils
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from utils.grade_engine import compute_grades, is_rejected, validate_grading_scheme


SCHEME = {
    "writtenWorksPercent": 30,
    "performanceTasksPercent": 50,
    "quarterlyAssessmentPercent": 20,
}

ACTIVITIES = [
    {"id": "ww1", "category": "WRITTEN_WORK", "maxScore": 10},
    {"id": "pt1", "category": "PERFORMANCE_TASK", "maxScore": 50},
    {"id": "qa1", "category": "QUARTERLY_ASSESSMENT", "maxScore": 20},
]


def _sub(activity_id, raw, status="APPROVED"):
    return {"activityId": activity_id, "rawScore": raw, "status": status}


def _all_approved():
    return [_sub("ww1", 8), _sub("pt1", 40), _sub("qa1", 18)]


def test_all_categories_approved_gives_current_grade():
    result = compute_grades(_all_approved(), ACTIVITIES, SCHEME)

    assert result["ww"]["percent"] == pytest.approx(80)
    assert result["pt"]["percent"] == pytest.approx(80)
    assert result["qa"]["percent"] == pytest.approx(90)
    assert result["initialGrade"] == pytest.approx(82)
    assert result["currentGrade"] == 86
    assert result["tentativeGrade"] == 86
    assert result["approvedCount"] == 3
    assert result["isEligibleForTentative"] is True
    assert result["isSynced"] is True


def test_pending_quarterly_assessment_gives_only_tentative_grade():
    subs = [_sub("ww1", 8), _sub("pt1", 40), _sub("qa1", 18, "PENDING")]
    result = compute_grades(subs, ACTIVITIES, SCHEME)

    assert result["currentGrade"] is None
    assert result["initialGrade"] is None
    assert result["tentativeGrade"] == 86
    assert result["pendingCount"] == 1
    assert result["isEligibleForTentative"] is True
    assert result["isSynced"] is False
    # Category aggregates only reflect approved work
    assert result["qa"]["count"] == 0


def test_no_submissions_returns_nulls_and_zero_counts():
    result = compute_grades([], ACTIVITIES, SCHEME)

    assert result["currentGrade"] is None
    assert result["tentativeGrade"] is None
    assert result["initialGrade"] is None
    assert result["pendingCount"] == 0
    assert result["needsRevisionCount"] == 0
    assert result["approvedCount"] == 0
    assert result["isEligibleForTentative"] is False
    assert result["isSynced"] is False


def test_single_declined_submission_counts_as_needs_revision():
    result = compute_grades([_sub("ww1", 5, "DECLINED")], ACTIVITIES, SCHEME)

    assert result["needsRevisionCount"] == 1
    assert result["ww"]["count"] == 0
    assert result["currentGrade"] is None
    assert result["tentativeGrade"] is None


def test_missing_category_is_null_not_zero():
    subs = [_sub("ww1", 0), _sub("pt1", 0)]
    result = compute_grades(subs, ACTIVITIES, SCHEME)

    assert result["currentGrade"] is None
    assert result["tentativeGrade"] is None


def test_zero_scores_in_every_category_still_grade():
    subs = [_sub("ww1", 0), _sub("pt1", 0), _sub("qa1", 0)]
    result = compute_grades(subs, ACTIVITIES, SCHEME)

    assert result["initialGrade"] == 0
    assert result["currentGrade"] == 70


def test_no_grading_scheme_means_no_grades():
    result = compute_grades(_all_approved(), ACTIVITIES, None)

    assert result["currentGrade"] is None
    assert result["tentativeGrade"] is None
    assert result["approvedCount"] == 3
    assert result["isEligibleForTentative"] is True
    assert result["isSynced"] is False


def test_archived_activity_is_excluded_regardless_of_status():
    activities = ACTIVITIES + [
        {"id": "ww-old", "category": "WRITTEN_WORK", "maxScore": 100, "archived": True}
    ]
    subs = _all_approved() + [
        _sub("ww-old", 0, "APPROVED"),
        _sub("ww-old", 0, "PENDING"),
        _sub("ww-old", 0, "NEEDS_REVISION"),
    ]
    result = compute_grades(subs, activities, SCHEME)

    assert result["ww"] == {"earned": 8, "max": 10, "percent": pytest.approx(80), "count": 1}
    assert result["approvedCount"] == 3
    assert result["pendingCount"] == 0
    assert result["needsRevisionCount"] == 0
    assert result["isSynced"] is True


def test_unknown_activity_is_ignored():
    subs = _all_approved() + [_sub("does-not-exist", 50)]
    result = compute_grades(subs, ACTIVITIES, SCHEME)

    assert result["approvedCount"] == 3
    assert result["currentGrade"] == 86


def test_outstanding_revision_blocks_sync_even_in_complete_record():
    activities = ACTIVITIES + [{"id": "ww2", "category": "WRITTEN_WORK", "maxScore": 10}]
    subs = _all_approved() + [_sub("ww2", 3, "NEEDS_REVISION")]
    result = compute_grades(subs, activities, SCHEME)

    assert result["currentGrade"] == 86
    assert result["needsRevisionCount"] == 1
    assert result["isSynced"] is False


def test_tentative_grade_previews_pending_work():
    activities = ACTIVITIES + [{"id": "ww2", "category": "WRITTEN_WORK", "maxScore": 10}]
    subs = _all_approved() + [_sub("ww2", 0, "PENDING")]
    result = compute_grades(subs, activities, SCHEME)

    # WW with pending: 8/20 = 40% -> 40*0.3 + 40 + 18 = 70 -> 84
    assert result["currentGrade"] == 86
    assert result["tentativeGrade"] == 84


def test_sync_forces_tentative_equal_to_current():
    activities = [
        {"id": "ww1", "category": "WRITTEN_WORK", "maxScore": 3},
        {"id": "ww2", "category": "WRITTEN_WORK", "maxScore": 7},
        {"id": "pt1", "category": "PERFORMANCE_TASK", "maxScore": 9},
        {"id": "qa1", "category": "QUARTERLY_ASSESSMENT", "maxScore": 11},
    ]
    subs = [_sub("ww1", 1), _sub("ww2", 6), _sub("pt1", 7), _sub("qa1", 9)]
    result = compute_grades(subs, activities, SCHEME)

    assert result["pendingCount"] == 0
    assert result["needsRevisionCount"] == 0
    assert result["isSynced"] is True
    assert result["tentativeGrade"] == result["currentGrade"]


def test_sync_overrides_tentative_with_current(monkeypatch):
    grades = iter([86, 99])
    calls = []

    def fake_transmute(percent, rules=None):
        calls.append(percent)
        return next(grades)

    monkeypatch.setattr("utils.grade_engine.transmute", fake_transmute)
    result = compute_grades(_all_approved(), ACTIVITIES, SCHEME)

    assert len(calls) == 2
    assert result["isSynced"] is True
    assert result["currentGrade"] == 86
    assert result["tentativeGrade"] == 86


def test_initial_grade_is_monotonic_in_earned_score():
    previous = None
    for raw in range(0, 51, 5):
        subs = [_sub("ww1", 5), _sub("pt1", raw), _sub("qa1", 10)]
        initial = compute_grades(subs, ACTIVITIES, SCHEME)["initialGrade"]
        if previous is not None:
            assert initial >= previous
        previous = initial


def test_category_with_zero_max_has_zero_percent_and_no_current_grade():
    activities = [
        {"id": "ww1", "category": "WRITTEN_WORK", "maxScore": 0},
        {"id": "pt1", "category": "PERFORMANCE_TASK", "maxScore": 50},
        {"id": "qa1", "category": "QUARTERLY_ASSESSMENT", "maxScore": 20},
    ]
    subs = [_sub("ww1", 0), _sub("pt1", 40), _sub("qa1", 18)]
    result = compute_grades(subs, activities, SCHEME)

    assert result["ww"] == {"earned": 0, "max": 0, "percent": 0, "count": 1}
    # An approved entry with nothing to score is no data, not a zero score
    assert result["currentGrade"] is None
    assert result["initialGrade"] is None
    assert result["isSynced"] is False
    # Tentative eligibility only needs an entry per category: 0 + 40 + 18 = 58 -> 81
    assert result["isEligibleForTentative"] is True
    assert result["tentativeGrade"] == 81


def test_status_and_category_matching_is_case_insensitive():
    activities = [
        {"id": "ww1", "category": "written_work", "maxScore": 10},
        {"id": "pt1", "category": "Performance_Task", "maxScore": 50},
        {"id": "qa1", "category": "quarterly_assessment", "maxScore": 20},
    ]
    subs = [_sub("ww1", 8, "approved"), _sub("pt1", 40, "Approved"), _sub("qa1", 18, "APPROVED")]
    result = compute_grades(subs, activities, SCHEME)

    assert result["currentGrade"] == 86


def test_linear_fallback_when_no_default_table():
    subs = [_sub("ww1", 10), _sub("pt1", 50), _sub("qa1", 20)]
    result = compute_grades(subs, ACTIVITIES, SCHEME, default_rules=None)

    assert result["currentGrade"] == 100


def test_scheme_table_takes_precedence_over_default():
    scheme = dict(SCHEME, transmutationRules=[
        {"minPercent": 0, "maxPercent": 74.99, "transmutedGrade": 74},
        {"minPercent": 75, "maxPercent": 100, "transmutedGrade": 95},
    ])
    result = compute_grades(_all_approved(), ACTIVITIES, scheme, default_rules=None)

    assert result["currentGrade"] == 95


def test_inputs_are_not_mutated():
    subs = _all_approved()
    activities = [dict(a) for a in ACTIVITIES]
    snapshot = ([dict(s) for s in subs], [dict(a) for a in activities])

    compute_grades(subs, activities, SCHEME)

    assert (subs, activities) == snapshot


def test_is_rejected_covers_declined_and_needs_revision():
    assert is_rejected("DECLINED")
    assert is_rejected("NEEDS_REVISION")
    assert not is_rejected("PENDING")
    assert not is_rejected("APPROVED")


def test_validate_grading_scheme_accepts_weights_summing_to_100():
    ok, errors = validate_grading_scheme(SCHEME)
    assert ok
    assert errors == []


def test_validate_grading_scheme_rejects_bad_weights():
    ok, errors = validate_grading_scheme(
        {"writtenWorksPercent": 30, "performanceTasksPercent": 50, "quarterlyAssessmentPercent": 30}
    )
    assert not ok
    assert "sum to 100" in errors[0]

    ok, errors = validate_grading_scheme({"writtenWorksPercent": 30})
    assert not ok
    assert len(errors) == 2


def test_validate_grading_scheme_checks_rule_table():
    scheme = dict(SCHEME, transmutationRules=[{"minPercent": 50, "maxPercent": 10, "transmutedGrade": 80}])
    ok, errors = validate_grading_scheme(scheme)
    assert not ok
    assert "exceeds maxPercent" in errors[0]

    ok, errors = validate_grading_scheme(dict(SCHEME, transmutationRules="nope"))
    assert not ok


def test_validate_grading_scheme_rejects_non_finite_weight():
    ok, errors = validate_grading_scheme(dict(SCHEME, writtenWorksPercent="nan"))
    assert not ok
    assert "finite" in errors[0]

    ok, errors = validate_grading_scheme(dict(SCHEME, performanceTasksPercent=float("inf")))
    assert not ok


def test_validate_grading_scheme_rejects_non_finite_rule_bound():
    scheme = dict(
        SCHEME,
        transmutationRules=[{"minPercent": "nan", "maxPercent": 100, "transmutedGrade": 80}],
    )
    ok, errors = validate_grading_scheme(scheme)
    assert not ok
    assert "finite" in errors[0]
