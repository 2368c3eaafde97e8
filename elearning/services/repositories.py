import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from elearning import schemas
from elearning.db.database import store_errors
from elearning.db.models import (
    Assessment, Category, Course, Enrollment, Lesson, Module, Quiz, Quizset, Report, Testimonial, User, Watch
)
from elearning.errors import ValidationError
from elearning.services.policies import list_rules_for
from elearning.services.repository import Repository, drop_listed_ids

logger = logging.getLogger(__name__)


class ModuleRepository(Repository):
    """A module moved to another course leaves the old course's reports."""

    def __init__(self):
        super().__init__(Module, schemas.ModuleCreate)

    async def _before_change(self, session, instance, changed):
        course_id = changed.get("course_id", instance.course_id)
        if course_id == instance.course_id:
            return
        with store_errors():
            result = await session.execute(select(Lesson.id).where(Lesson.module_id == instance.id))
        lesson_ids = list(result.scalars().all())

        old_course = [instance.course_id]
        for rule in list_rules_for(Module):
            await drop_listed_ids(session, rule, [instance.id], old_course)
        if lesson_ids:
            for rule in list_rules_for(Lesson):
                await drop_listed_ids(session, rule, lesson_ids, old_course)
        logger.info(f"Module {instance.id} moved from course {instance.course_id} to {course_id}")


class LessonRepository(Repository):
    """Watches follow their lesson into a new module."""

    def __init__(self):
        super().__init__(Lesson, schemas.LessonCreate)

    async def _before_change(self, session, instance, changed):
        module_id = changed.get("module_id", instance.module_id)
        if module_id == instance.module_id:
            return
        with store_errors():
            old_module = await session.get(Module, instance.module_id)
            new_module = await session.get(Module, module_id)
        if new_module.course_id != old_module.course_id:
            for rule in list_rules_for(Lesson):
                await drop_listed_ids(session, rule, [instance.id], [old_module.course_id])

        with store_errors():
            await session.execute(
                update(Watch).where(Watch.lesson_id == instance.id).values(module_id=module_id)
            )
        logger.info(f"Lesson {instance.id} moved from module {instance.module_id} to {module_id}")


class ReportRepository(Repository):
    """Completed lesson/module ids must belong to the report's course."""

    def __init__(self):
        super().__init__(Report, schemas.ReportCreate)

    async def _check_invariants(self, session, values, instance=None):
        course_id = values["course_id"]
        with store_errors():
            modules = await session.execute(select(Module.id).where(Module.course_id == course_id))
            module_ids = set(modules.scalars().all())
            lessons = await session.execute(
                select(Lesson.id).join(Module, Lesson.module_id == Module.id).where(Module.course_id == course_id)
            )
            lesson_ids = set(lessons.scalars().all())

        errors = []
        stray_modules = [i for i in values["total_completed_modules"] if i not in module_ids]
        if stray_modules:
            errors.append({
                "loc": ("total_completed_modules",),
                "msg": f"modules not in course {course_id}: {[str(i) for i in stray_modules]}",
                "type": "subset",
            })
        stray_lessons = [i for i in values["total_completed_lessons"] if i not in lesson_ids]
        if stray_lessons:
            errors.append({
                "loc": ("total_completed_lessons",),
                "msg": f"lessons not in course {course_id}: {[str(i) for i in stray_lessons]}",
                "type": "subset",
            })
        if errors:
            raise ValidationError("Report lists progress outside its course", errors=errors)


class WatchRepository(Repository):
    """The watched lesson must sit in the referenced module."""

    def __init__(self):
        super().__init__(Watch, schemas.WatchCreate)

    async def _check_invariants(self, session, values, instance=None):
        with store_errors():
            lesson = await session.get(Lesson, values["lesson_id"])
        if lesson.module_id != values["module_id"]:
            raise ValidationError(
                f"Lesson {lesson.id} does not belong to module {values['module_id']}",
                errors=[{"loc": ("module_id",), "msg": "lesson is in another module", "type": "mismatch"}],
            )


users = Repository(User, schemas.UserCreate)
categories = Repository(Category, schemas.CategoryCreate)
courses = Repository(Course, schemas.CourseCreate)
modules = ModuleRepository()
lessons = LessonRepository()
quizsets = Repository(Quizset, schemas.QuizsetCreate)
quizzes = Repository(Quiz, schemas.QuizCreate)
assessments = Repository(Assessment, schemas.AssessmentCreate)
enrollments = Repository(Enrollment, schemas.EnrollmentCreate)
reports = ReportRepository()
testimonials = Repository(Testimonial, schemas.TestimonialCreate)
watches = WatchRepository()

REPOSITORIES = {
    repository.model: repository
    for repository in (
        users, categories, courses, modules, lessons, quizsets,
        quizzes, assessments, enrollments, reports, testimonials, watches,
    )
}


def repository_for(model):
    return REPOSITORIES[model]


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    with store_errors():
        result = await session.execute(select(User).filter(User.email == email))
    return result.scalars().first()
