"""What happens to dependent records when a record is deleted.

Authored structure (modules, lessons, quizzes and the watches hanging off
lessons) goes with its parent. Learner records (enrollments, reports,
testimonials, a user's watches) block deleting the course or user they
belong to. Optional links are cleared.

The same rules are declared as ``ON DELETE`` clauses on the foreign keys in
``elearning.db.models``; ``tests/test_delete_policy.py`` keeps the two in step.

Reports also name modules and lessons inside id lists, which no foreign key
covers. ``LIST_RULES`` drops those ids when the module or lesson is deleted
or leaves the report's course.
"""

import enum
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import select

from elearning.db.models import (
    Assessment, Category, Course, Enrollment, Lesson, Module, Quiz, Quizset, Report, Testimonial, User, Watch
)


class OnDelete(str, enum.Enum):
    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    SET_NULL = "SET NULL"


@dataclass(frozen=True)
class DeleteRule:
    parent: type
    child: type
    foreign_key: str  # attribute on the child
    action: OnDelete


DELETE_RULES = (
    # structure
    DeleteRule(Course, Module, "course_id", OnDelete.CASCADE),
    DeleteRule(Module, Lesson, "module_id", OnDelete.CASCADE),
    DeleteRule(Module, Watch, "module_id", OnDelete.CASCADE),
    DeleteRule(Lesson, Watch, "lesson_id", OnDelete.CASCADE),
    DeleteRule(Quizset, Quiz, "quizset_id", OnDelete.CASCADE),
    # learner records
    DeleteRule(Course, Enrollment, "course_id", OnDelete.RESTRICT),
    DeleteRule(Course, Report, "course_id", OnDelete.RESTRICT),
    DeleteRule(Course, Testimonial, "course_id", OnDelete.RESTRICT),
    DeleteRule(User, Enrollment, "student_id", OnDelete.RESTRICT),
    DeleteRule(User, Report, "student_id", OnDelete.RESTRICT),
    DeleteRule(User, Testimonial, "user_id", OnDelete.RESTRICT),
    DeleteRule(User, Watch, "user_id", OnDelete.RESTRICT),
    # optional links
    DeleteRule(Category, Course, "category_id", OnDelete.SET_NULL),
    DeleteRule(User, Course, "instructor_id", OnDelete.SET_NULL),
    DeleteRule(Quizset, Course, "quizset_id", OnDelete.SET_NULL),
    DeleteRule(Assessment, Report, "quiz_assessment_id", OnDelete.SET_NULL),
)


def rules_for(parent):
    return [rule for rule in DELETE_RULES if rule.parent is parent]


@dataclass(frozen=True)
class ListRule:
    parent: type
    holder: type
    field: str  # id list on the holder
    holder_key: str  # holder attribute matched against ``scope``
    scope: Callable  # parent ids -> select of holder_key values to search


def _courses_of_modules(ids):
    return select(Module.course_id).where(Module.id.in_(ids))


def _courses_of_lessons(ids):
    return select(Module.course_id).join(Lesson, Lesson.module_id == Module.id).where(Lesson.id.in_(ids))


LIST_RULES = (
    ListRule(Module, Report, "total_completed_modules", "course_id", _courses_of_modules),
    ListRule(Lesson, Report, "total_completed_lessons", "course_id", _courses_of_lessons),
)


def list_rules_for(parent):
    return [rule for rule in LIST_RULES if rule.parent is parent]
