from elearning.services.repositories import (
    assessments,
    categories,
    courses,
    enrollments,
    lessons,
    modules,
    quizsets,
    quizzes,
    reports,
    repository_for,
    testimonials,
    users,
    watches,
)

__all__ = [
    "assessments",
    "categories",
    "courses",
    "enrollments",
    "lessons",
    "modules",
    "quizsets",
    "quizzes",
    "reports",
    "repository_for",
    "testimonials",
    "users",
    "watches",
]
