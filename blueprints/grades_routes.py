import logging
import math
from flask import Blueprint, current_app, jsonify, request

from utils.config import get_default_rules
from utils.grade_engine import (
    compute_grades,
    validate_grading_scheme,
    validate_transmutation_rules,
)
from utils.grade_reports import (
    compute_class_grades,
    find_at_risk_students,
    round_for_display,
)
from utils.statistics_utils import summarize_class_grades
from utils.transmutation import transmute

logger = logging.getLogger(__name__)

grades_bp = Blueprint("grades", __name__)


def _read_payload():
    """Return (data, error_response). Rejects bodies that are not JSON objects."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, (jsonify({"error": "request body must be a JSON object"}), 400)
    return data, None


def _check_inputs(data: dict, list_fields):
    """Validate list-shaped fields and the optional grading scheme."""
    for field in list_fields:
        if not isinstance(data.get(field, []), list):
            return jsonify({"error": f"{field} must be a list"}), 400

    scheme = data.get("gradingScheme")
    if scheme is not None:
        ok, errors = validate_grading_scheme(
            scheme, tolerance=current_app.config.get("WEIGHT_TOLERANCE", 0.01)
        )
        if not ok:
            logger.warning(f"Rejected grading scheme: {errors}")
            return jsonify({"error": "invalid_grading_scheme", "errors": errors}), 400
    return None


# API: POST "/api/grades/compute"
# Used by: student standing views and the teacher gradebook
# Purpose: Current/tentative grade for one student's submissions.
@grades_bp.route("/api/grades/compute", methods=["POST"])
def api_compute_grades():
    """
    Expected JSON shape:
    {
      "submissions": [{"activityId": "a1", "rawScore": 8, "status": "APPROVED"}, ...],
      "activities": [{"id": "a1", "category": "WRITTEN_WORK", "maxScore": 10}, ...],
      "gradingScheme": {"writtenWorksPercent": 30, "performanceTasksPercent": 50,
                        "quarterlyAssessmentPercent": 20}
    }
    """
    try:
        data, error = _read_payload()
        if error:
            return error
        error = _check_inputs(data, ("submissions", "activities"))
        if error:
            return error

        computed = compute_grades(
            data.get("submissions", []),
            data.get("activities", []),
            data.get("gradingScheme"),
            get_default_rules(current_app),
        )
        logger.info(
            f"Computed grades: current={computed['currentGrade']} tentative={computed['tentativeGrade']}"
        )
        return jsonify({"grades": computed, "display": round_for_display(computed)}), 200
    except Exception as exc:
        logger.error(f"Grade computation failed: {exc}")
        return jsonify({"error": "failed_to_compute", "message": str(exc)}), 500


# API: POST "/api/grades/class"
# Used by: class report export and at-risk student panel
# Purpose: Grade every student of a class and flag at-risk students.
@grades_bp.route("/api/grades/class", methods=["POST"])
def api_class_grades():
    """
    Expected JSON shape:
    {
      "students": [{"studentId": "s1", "studentName": "Cruz, Ana", "submissions": [...]}, ...],
      "activities": [...],
      "gradingScheme": {...}
    }
    """
    try:
        data, error = _read_payload()
        if error:
            return error
        error = _check_inputs(data, ("students", "activities"))
        if error:
            return error

        activities = data.get("activities", [])
        class_grades = compute_class_grades(
            data.get("students", []),
            activities,
            data.get("gradingScheme"),
            get_default_rules(current_app),
        )
        at_risk = find_at_risk_students(
            class_grades,
            activities,
            grade_threshold=current_app.config.get("AT_RISK_GRADE_THRESHOLD", 75),
            missing_ratio=current_app.config.get("AT_RISK_MISSING_RATIO", 0.3),
        )
        return (
            jsonify(
                {
                    "grades": class_grades,
                    "atRisk": at_risk,
                    "statistics": summarize_class_grades(class_grades),
                }
            ),
            200,
        )
    except Exception as exc:
        logger.error(f"Class grade computation failed: {exc}")
        return jsonify({"error": "failed_to_compute", "message": str(exc)}), 500


# API: POST "/api/grades/transmute"
# Used by: grading scheme editor preview
# Purpose: Transmute a single percentage with a given (or default) table.
@grades_bp.route("/api/grades/transmute", methods=["POST"])
def api_transmute():
    data, error = _read_payload()
    if error:
        return error
    try:
        percent = float(data.get("percent"))
    except (TypeError, ValueError):
        return jsonify({"error": "percent must be a number"}), 400
    if not math.isfinite(percent):
        return jsonify({"error": "percent must be a finite number"}), 400

    rules = data.get("transmutationRules")
    if rules is None:
        rules = get_default_rules(current_app)
    else:
        errors = validate_transmutation_rules(rules)
        if errors:
            logger.warning(f"Rejected transmutation rules: {errors}")
            return jsonify({"error": "invalid_transmutation_rules", "errors": errors}), 400

    return jsonify({"percent": percent, "transmutedGrade": transmute(percent, rules)}), 200


# API: POST "/api/grading-scheme/validate"
# Used by: grading scheme editor before saving
# Purpose: Report whether a scheme's weights and transmutation table are acceptable.
@grades_bp.route("/api/grading-scheme/validate", methods=["POST"])
def api_validate_scheme():
    data = request.get_json(silent=True)
    ok, errors = validate_grading_scheme(
        data, tolerance=current_app.config.get("WEIGHT_TOLERANCE", 0.01)
    )
    return jsonify({"valid": ok, "errors": errors}), 200


# API: GET "/api/health"
# Used by: deployment health checks
@grades_bp.route("/api/health", methods=["GET"])
def api_health():
    return (
        jsonify(
            {
                "status": "ok",
                "environment": current_app.config.get("ENVIRONMENT"),
                "defaultTransmutation": current_app.config.get("DEFAULT_TRANSMUTATION"),
            }
        ),
        200,
    )
