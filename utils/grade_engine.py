import enum
import logging
import math

from utils.transmutation import (
    DEFAULT_TRANSMUTATION_RULES,
    resolve_transmutation_rules,
    transmute,
)

logger = logging.getLogger(__name__)


class SubmissionStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    NEEDS_REVISION = "NEEDS_REVISION"


class ActivityCategory(str, enum.Enum):
    WRITTEN_WORK = "WRITTEN_WORK"
    PERFORMANCE_TASK = "PERFORMANCE_TASK"
    QUARTERLY_ASSESSMENT = "QUARTERLY_ASSESSMENT"


# Short keys used in ComputedGrades, paired with the scheme weight field.
CATEGORY_KEYS = {
    ActivityCategory.WRITTEN_WORK.value: ("ww", "writtenWorksPercent"),
    ActivityCategory.PERFORMANCE_TASK.value: ("pt", "performanceTasksPercent"),
    ActivityCategory.QUARTERLY_ASSESSMENT.value: (
        "qa",
        "quarterlyAssessmentPercent",
    ),
}

WEIGHT_FIELDS = [weight_field for _, weight_field in CATEGORY_KEYS.values()]


def is_rejected(status) -> bool:
    """Declined and NeedsRevision both block grading and both need attention."""
    return status in (SubmissionStatus.DECLINED.value, SubmissionStatus.NEEDS_REVISION.value)


def is_counted_for_tentative(status) -> bool:
    return status in (SubmissionStatus.APPROVED.value, SubmissionStatus.PENDING.value)


def to_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _normalize_activities(activities) -> dict:
    """Return {activity_id: {"category", "maxScore"}} for non-archived activities."""
    active = {}
    for a in activities or []:
        if not isinstance(a, dict) or a.get("archived"):
            continue
        activity_id = a.get("id")
        if activity_id is None:
            continue
        active[activity_id] = {
            "category": str(a.get("category") or "").upper(),
            "maxScore": to_float(a.get("maxScore")),
        }
    return active


def calc_category_stats(items: list) -> dict:
    """Sum (earned, max) pairs into {earned, max, percent, count}."""
    earned = sum(e for e, _ in items)
    max_total = sum(m for _, m in items)
    percent = (earned / max_total) * 100.0 if max_total > 0 else 0.0
    return {"earned": earned, "max": max_total, "percent": percent, "count": len(items)}


def calc_weighted_grade(stats_by_key: dict, grading_scheme: dict) -> float:
    """initial = sum(category percent * category weight) / 100, at full precision."""
    total = 0.0
    for key, weight_field in CATEGORY_KEYS.values():
        weight = to_float(grading_scheme.get(weight_field))
        total += (stats_by_key[key]["percent"] * weight) / 100.0
    return total


def _has_all_categories(stats_by_key: dict) -> bool:
    return all(stats_by_key[key]["count"] >= 1 for key, _ in CATEGORY_KEYS.values())


def _has_all_gradable_categories(stats_by_key: dict) -> bool:
    """Every category has an entry and a positive max (a zero-max category is no data)."""
    return all(
        stats_by_key[key]["count"] >= 1 and stats_by_key[key]["max"] > 0
        for key, _ in CATEGORY_KEYS.values()
    )


def compute_grades(
    submissions, activities, grading_scheme, default_rules=DEFAULT_TRANSMUTATION_RULES
) -> dict:
    """Compute current/tentative grades for one student's submissions.

    - Archived activities and submissions pointing at unknown or archived
      activities are ignored.
    - currentGrade uses APPROVED submissions only and needs at least one in
      each of WW/PT/QA with a positive max; tentativeGrade pools APPROVED and
      PENDING.
    - Grades stay None (not 0) when a category has no qualifying entry or no
      grading scheme is given.
    - When nothing is pending or rejected, tentativeGrade mirrors currentGrade.

    `default_rules` is the transmutation table used when the scheme carries
    none; pass None to use the linear 70..100 curve instead.
    """
    active_activities = _normalize_activities(activities)

    approved_items = {key: [] for key, _ in CATEGORY_KEYS.values()}
    tentative_items = {key: [] for key, _ in CATEGORY_KEYS.values()}

    pending_count = 0
    needs_revision_count = 0
    approved_count = 0

    for sub in submissions or []:
        if not isinstance(sub, dict):
            continue
        activity = active_activities.get(sub.get("activityId"))
        if activity is None:
            logger.debug(
                f"Skipping submission for inactive/unknown activity {sub.get('activityId')!r}"
            )
            continue

        status = str(sub.get("status") or "").upper()
        entry = (to_float(sub.get("rawScore")), activity["maxScore"])

        if status == SubmissionStatus.APPROVED.value:
            approved_count += 1
        elif status == SubmissionStatus.PENDING.value:
            pending_count += 1
        elif is_rejected(status):
            needs_revision_count += 1

        category = CATEGORY_KEYS.get(activity["category"])
        if category is None:
            continue
        key = category[0]
        if status == SubmissionStatus.APPROVED.value:
            approved_items[key].append(entry)
        if is_counted_for_tentative(status):
            tentative_items[key].append(entry)

    approved_stats = {key: calc_category_stats(items) for key, items in approved_items.items()}
    tentative_stats = {
        key: calc_category_stats(items) for key, items in tentative_items.items()
    }

    is_eligible_for_tentative = _has_all_categories(tentative_stats)

    current_grade = None
    tentative_grade = None
    initial_grade = None

    if grading_scheme:
        rules = resolve_transmutation_rules(grading_scheme, default_rules)

        if _has_all_gradable_categories(approved_stats):
            initial_grade = calc_weighted_grade(approved_stats, grading_scheme)
            current_grade = transmute(initial_grade, rules)

        if is_eligible_for_tentative:
            tentative_initial = calc_weighted_grade(tentative_stats, grading_scheme)
            tentative_grade = transmute(tentative_initial, rules)

    is_synced = (
        is_eligible_for_tentative
        and pending_count == 0
        and needs_revision_count == 0
        and current_grade is not None
    )
    if is_synced:
        tentative_grade = current_grade

    return {
        "ww": approved_stats["ww"],
        "pt": approved_stats["pt"],
        "qa": approved_stats["qa"],
        "currentGrade": current_grade,
        "tentativeGrade": tentative_grade,
        "initialGrade": initial_grade,
        "pendingCount": pending_count,
        "needsRevisionCount": needs_revision_count,
        "approvedCount": approved_count,
        "isEligibleForTentative": is_eligible_for_tentative,
        "isSynced": is_synced,
    }


def validate_grading_scheme(scheme, tolerance: float = 0.01):
    """Validate a grading scheme before it is accepted.

    Returns (ok: bool, errors: list[str]). Weights must be numeric, non-negative
    and sum to 100 within `tolerance`; a transmutation table, when present,
    must be a list of numeric bands with minPercent <= maxPercent.
    """
    errors = []
    if not isinstance(scheme, dict):
        return False, ["gradingScheme must be an object"]

    total = 0.0
    for field in WEIGHT_FIELDS:
        raw = scheme.get(field)
        if raw is None:
            errors.append(f"{field} is required")
            continue
        try:
            weight = float(raw)
        except (TypeError, ValueError):
            errors.append(f"{field} must be a number (got {raw!r})")
            continue
        if not math.isfinite(weight):
            errors.append(f"{field} must be a finite number (got {raw!r})")
            continue
        if weight < 0:
            errors.append(f"{field} must not be negative (got {weight})")
        total += weight

    if not errors and abs(total - 100.0) > tolerance:
        errors.append(f"Category weights must sum to 100 (got {total})")

    rules = scheme.get("transmutationRules")
    if rules is not None:
        errors.extend(validate_transmutation_rules(rules))

    return len(errors) == 0, errors


def validate_transmutation_rules(rules) -> list:
    """Return a list of problems with a transmutation table (empty when valid)."""
    if not isinstance(rules, list):
        return ["transmutationRules must be a list"]

    errors = []
    for idx, rule in enumerate(rules):
        if not isinstance(rule, dict):
            errors.append(f"transmutationRules[{idx}] must be an object")
            continue
        try:
            bounds = [
                float(rule["minPercent"]),
                float(rule["maxPercent"]),
                float(rule["transmutedGrade"]),
            ]
        except (KeyError, TypeError, ValueError):
            errors.append(
                f"transmutationRules[{idx}] needs numeric minPercent, maxPercent and transmutedGrade"
            )
            continue
        if not all(math.isfinite(v) for v in bounds):
            errors.append(f"transmutationRules[{idx}] values must be finite numbers")
            continue
        lo, hi, _ = bounds
        if lo > hi:
            errors.append(
                f"transmutationRules[{idx}] minPercent {lo} exceeds maxPercent {hi}"
            )
    return errors
