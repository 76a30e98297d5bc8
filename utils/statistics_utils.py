import numpy as np
from scipy.stats import skew

PASSING_GRADE = 75


def _graded_values(class_grades):
    return [
        float(g["grade"]["transmutedGrade"])
        for g in class_grades or []
        if g["grade"]["transmutedGrade"] is not None
    ]


def summarize_class_grades(class_grades, passing_grade=PASSING_GRADE):
    """Distribution summary over the students that already have a current grade."""
    grades = _graded_values(class_grades)
    total = len(class_grades or [])
    summary = {
        "total_students": total,
        "graded_count": len(grades),
        "ungraded_count": total - len(grades),
        "mean": None,
        "median": None,
        "std_dev": None,
        "min": None,
        "max": None,
        "q1": None,
        "q3": None,
        "skewness": None,
        "passing_count": 0,
        "passing_rate": None,
    }
    if not grades:
        return summary

    passing = len([g for g in grades if g >= passing_grade])
    summary.update(
        {
            "mean": round(float(np.mean(grades)), 2),
            "median": round(float(np.median(grades)), 2),
            "std_dev": round(float(np.std(grades)), 2),
            "min": float(np.min(grades)),
            "max": float(np.max(grades)),
            "q1": round(float(np.percentile(grades, 25)), 2),
            "q3": round(float(np.percentile(grades, 75)), 2),
            "passing_count": passing,
            "passing_rate": round((passing / len(grades)) * 100, 1),
        }
    )
    # skew() needs at least 3 non-constant grades
    if len(grades) >= 3 and float(np.std(grades)) > 0:
        summary["skewness"] = round(float(skew(grades)), 3)
    return summary
