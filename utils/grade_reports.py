"""Report-shaped views over computed grades.

Everything here is built on top of compute_grades(); nothing recomputes the
weighting or transmutation on its own, so reports and student views always
agree with the engine.
"""

import logging

from utils.grade_engine import SubmissionStatus, compute_grades, to_float
from utils.transmutation import DEFAULT_TRANSMUTATION_RULES

logger = logging.getLogger(__name__)

DEFAULT_AT_RISK_GRADE = 75
DEFAULT_AT_RISK_MISSING_RATIO = 0.3

# ComputedGrades short key -> GradeResult field prefix
REPORT_PREFIXES = {
    "ww": "writtenWorks",
    "pt": "performanceTasks",
    "qa": "quarterlyAssessment",
}


def _round2(value):
    return None if value is None else round(float(value), 2)


def round_for_display(computed: dict) -> dict:
    """Copy of a ComputedGrades dict with percentages rounded to 2 decimals."""
    display = dict(computed)
    for key in REPORT_PREFIXES:
        stats = dict(computed.get(key) or {})
        if "percent" in stats:
            stats["percent"] = _round2(stats["percent"])
        display[key] = stats
    display["initialGrade"] = _round2(computed.get("initialGrade"))
    return display


def _active_activity_lookup(activities) -> dict:
    return {
        a.get("id"): a
        for a in activities or []
        if isinstance(a, dict) and not a.get("archived") and a.get("id") is not None
    }


def _submission_rows(submissions, activity_lookup: dict) -> list:
    rows = []
    for sub in submissions or []:
        if not isinstance(sub, dict):
            continue
        activity = activity_lookup.get(sub.get("activityId"))
        if activity is None:
            continue
        raw = to_float(sub.get("rawScore"))
        max_score = to_float(activity.get("maxScore"))
        rows.append(
            {
                "activityId": sub.get("activityId"),
                "activityTitle": activity.get("title"),
                "category": str(activity.get("category") or "").upper(),
                "rawScore": raw,
                "maxScore": max_score,
                "percentScore": round(raw / max_score * 100, 2) if max_score > 0 else 0.0,
                "status": str(sub.get("status") or "").upper(),
            }
        )
    return rows


def build_student_grade(
    student: dict,
    submissions,
    activities,
    grading_scheme,
    default_rules=DEFAULT_TRANSMUTATION_RULES,
) -> dict:
    """Per-student grade summary used by class listings and exports."""
    computed = compute_grades(submissions, activities, grading_scheme, default_rules)

    grade = {}
    for key, prefix in REPORT_PREFIXES.items():
        stats = computed[key]
        grade[f"{prefix}Score"] = stats["earned"]
        grade[f"{prefix}Total"] = stats["max"]
        grade[f"{prefix}Percent"] = _round2(stats["percent"])
    grade["initialGrade"] = _round2(computed["initialGrade"])
    grade["transmutedGrade"] = computed["currentGrade"]

    return {
        "studentId": student.get("studentId"),
        "studentName": student.get("studentName") or "",
        "lrn": student.get("lrn"),
        "section": student.get("section"),
        "grade": grade,
        "computed": computed,
        "submissions": _submission_rows(submissions, _active_activity_lookup(activities)),
    }


def compute_class_grades(
    students, activities, grading_scheme, default_rules=DEFAULT_TRANSMUTATION_RULES
) -> list:
    """Grade every student in a class, sorted by name."""
    grades = []
    for student in students or []:
        if not isinstance(student, dict):
            continue
        grades.append(
            build_student_grade(
                student,
                student.get("submissions") or [],
                activities,
                grading_scheme,
                default_rules,
            )
        )
    logger.info(f"Computed grades for {len(grades)} students")
    return sorted(grades, key=lambda g: g["studentName"].lower())


def find_at_risk_students(
    class_grades,
    activities,
    grade_threshold: float = DEFAULT_AT_RISK_GRADE,
    missing_ratio: float = DEFAULT_AT_RISK_MISSING_RATIO,
) -> list:
    """Students with a current grade below the threshold or too many missing activities.

    A student with no current grade yet is only flagged on missing work; an
    incomplete record is not treated as a failing grade.
    """
    total_activities = len(_active_activity_lookup(activities))
    at_risk = []
    for g in class_grades or []:
        current = g["grade"]["transmutedGrade"]
        # Only approved work counts as submitted; declined or pending work is still missing
        submitted = len(
            {
                row["activityId"]
                for row in g["submissions"]
                if row["status"] == SubmissionStatus.APPROVED.value
            }
        )
        missing = max(total_activities - submitted, 0)

        below_threshold = current is not None and current < grade_threshold
        too_many_missing = missing > total_activities * missing_ratio
        if below_threshold or too_many_missing:
            at_risk.append(
                {
                    "studentId": g["studentId"],
                    "studentName": g["studentName"],
                    "currentGrade": current,
                    "missingSubmissions": missing,
                }
            )
    return at_risk
