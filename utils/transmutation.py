import logging
import math

logger = logging.getLogger(__name__)


# DepEd-style transmutation table: 20 contiguous bands over 0..100.
DEFAULT_TRANSMUTATION_RULES = [
    {"minPercent": 0, "maxPercent": 4.99, "transmutedGrade": 70},
    {"minPercent": 5, "maxPercent": 9.99, "transmutedGrade": 71},
    {"minPercent": 10, "maxPercent": 14.99, "transmutedGrade": 72},
    {"minPercent": 15, "maxPercent": 19.99, "transmutedGrade": 73},
    {"minPercent": 20, "maxPercent": 24.99, "transmutedGrade": 74},
    {"minPercent": 25, "maxPercent": 29.99, "transmutedGrade": 75},
    {"minPercent": 30, "maxPercent": 34.99, "transmutedGrade": 76},
    {"minPercent": 35, "maxPercent": 39.99, "transmutedGrade": 77},
    {"minPercent": 40, "maxPercent": 44.99, "transmutedGrade": 78},
    {"minPercent": 45, "maxPercent": 49.99, "transmutedGrade": 79},
    {"minPercent": 50, "maxPercent": 54.99, "transmutedGrade": 80},
    {"minPercent": 55, "maxPercent": 59.99, "transmutedGrade": 81},
    {"minPercent": 60, "maxPercent": 64.99, "transmutedGrade": 82},
    {"minPercent": 65, "maxPercent": 69.99, "transmutedGrade": 83},
    {"minPercent": 70, "maxPercent": 74.99, "transmutedGrade": 84},
    {"minPercent": 75, "maxPercent": 79.99, "transmutedGrade": 85},
    {"minPercent": 80, "maxPercent": 84.99, "transmutedGrade": 86},
    {"minPercent": 85, "maxPercent": 89.99, "transmutedGrade": 87},
    {"minPercent": 90, "maxPercent": 94.99, "transmutedGrade": 88},
    {"minPercent": 95, "maxPercent": 100, "transmutedGrade": 90},
]

LINEAR_BASE_GRADE = 70
LINEAR_GRADE_SPAN = 30


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive grades (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def _normalize_rules(rules) -> list:
    """Coerce a raw rule table into numeric {minPercent, maxPercent, transmutedGrade} dicts."""
    norm_rules = []
    for rule in rules or []:
        if not isinstance(rule, dict):
            continue
        try:
            norm_rule = {
                "minPercent": float(rule.get("minPercent") or 0),
                "maxPercent": float(rule.get("maxPercent") or 0),
                "transmutedGrade": float(rule.get("transmutedGrade") or 0),
            }
        except (TypeError, ValueError):
            logger.warning(f"Skipping malformed transmutation rule: {rule!r}")
            continue
        if not all(math.isfinite(v) for v in norm_rule.values()):
            logger.warning(f"Skipping non-finite transmutation rule: {rule!r}")
            continue
        norm_rules.append(norm_rule)
    return norm_rules


def transmute_linear(percent: float) -> int:
    """Map 0..100 linearly onto 70..100."""
    return round_half_up(
        LINEAR_BASE_GRADE + (float(percent) / 100.0) * LINEAR_GRADE_SPAN
    )


def transmute_with_table(percent: float, rules: list) -> int:
    """Look up percent in an ordered band table.

    Bands are closed on both ends. Below the first band returns the first band's
    grade, above the last band returns the last band's grade. A value sitting in
    the gap between two bands (e.g. 4.995 between 4.99 and 5) takes the highest
    band whose minimum it has reached.
    """
    norm_rules = _normalize_rules(rules)
    if not norm_rules:
        # A table was supplied, so keep to a table curve
        logger.warning("No usable transmutation rules supplied, using the DepEd table")
        norm_rules = _normalize_rules(DEFAULT_TRANSMUTATION_RULES)

    percent = float(percent)
    for rule in norm_rules:
        if rule["minPercent"] <= percent <= rule["maxPercent"]:
            return round_half_up(rule["transmutedGrade"])

    if percent < norm_rules[0]["minPercent"]:
        return round_half_up(norm_rules[0]["transmutedGrade"])
    if percent > norm_rules[-1]["maxPercent"]:
        return round_half_up(norm_rules[-1]["transmutedGrade"])

    reached = [r for r in norm_rules if r["minPercent"] <= percent] or norm_rules[:1]
    return round_half_up(reached[-1]["transmutedGrade"])


def transmute(percent: float, rules=None) -> int:
    """Transmute a weighted percentage into a final grade.

    With a rule table the band lookup applies; without one (None or empty) the
    linear 70..100 curve applies.
    """
    if rules:
        return transmute_with_table(percent, rules)
    return transmute_linear(percent)


def resolve_transmutation_rules(grading_scheme, default_rules=DEFAULT_TRANSMUTATION_RULES):
    """Pick the single curve a computation uses.

    The scheme's own table wins; otherwise the deployment default applies
    (None selects the linear curve).
    """
    if isinstance(grading_scheme, dict):
        scheme_rules = grading_scheme.get("transmutationRules")
        if scheme_rules:
            return scheme_rules
    return default_rules
