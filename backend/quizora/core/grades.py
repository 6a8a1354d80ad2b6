# backend/quizora/core/grades.py

# inclusive lower bounds, highest first
GRADE_THRESHOLDS = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
    (45, "D+"),
    (40, "D"),
)


def calculate_grade(percentage: float) -> str:
    """Letter grade for a percentage; a pure step function, never taken from the client."""
    for lower_bound, grade in GRADE_THRESHOLDS:
        if percentage >= lower_bound:
            return grade
    return "F"
