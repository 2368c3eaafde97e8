"""Field-level validation done by the pydantic schemas."""

import uuid
from datetime import datetime, timedelta, timezone

import pydantic
import pytest

from elearning import schemas
from elearning.db.models import EnrollmentStatus, LessonAccess, WatchState


class TestDefaults:
    def test_course_defaults(self):
        course = schemas.CourseCreate(title="Intro to Go")
        assert course.price == 0
        assert course.active is False
        assert course.learning == []

    def test_lesson_defaults(self):
        lesson = schemas.LessonCreate(title="Goroutines", slug="goroutines", order=1, module_id=uuid.uuid4())
        assert lesson.access is LessonAccess.private
        assert lesson.duration == 0
        assert lesson.active is False

    def test_watch_defaults(self):
        watch = schemas.WatchCreate(lesson_id=uuid.uuid4(), user_id=uuid.uuid4(), module_id=uuid.uuid4())
        assert watch.state is WatchState.started
        assert watch.last_time == 0

    def test_quiz_mark_defaults_to_five(self):
        quiz = schemas.QuizCreate(title="Channels", quizset_id=uuid.uuid4())
        assert quiz.mark == 5
        assert quiz.options == []


class TestRanges:
    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_rating_outside_range_rejected(self, rating):
        with pytest.raises(pydantic.ValidationError):
            schemas.TestimonialCreate(content="Great", rating=rating, user_id=uuid.uuid4(), course_id=uuid.uuid4())

    def test_rating_bounds_accepted(self):
        for rating in (1, 5):
            schemas.TestimonialCreate(content="Great", rating=rating, user_id=uuid.uuid4(), course_id=uuid.uuid4())

    def test_negative_price_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            schemas.CourseCreate(title="Intro to Go", price=-0.01)

    def test_negative_last_time_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            schemas.WatchCreate(last_time=-5, lesson_id=uuid.uuid4(), user_id=uuid.uuid4(), module_id=uuid.uuid4())


class TestClosedSets:
    def test_unknown_access_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            schemas.LessonCreate(title="x", slug="x", order=1, access="secret", module_id=uuid.uuid4())

    def test_unknown_role_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            schemas.UserCreate(first_name="A", last_name="B", password="h", email="a@learnhub.io", role="owner")

    def test_status_from_string(self):
        enrollment = schemas.EnrollmentCreate(
            status="completed", method="invite", course_id=uuid.uuid4(), student_id=uuid.uuid4()
        )
        assert enrollment.status is EnrollmentStatus.completed


class TestInput:
    def test_storage_names_accepted(self):
        course_id = uuid.uuid4()
        module = schemas.ModuleCreate.model_validate(
            {"title": "Basics", "slug": "basics", "order": 1, "courseId": str(course_id)}
        )
        assert module.course_id == course_id

    def test_unknown_fields_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            schemas.CourseCreate(title="Intro to Go", modified_on=datetime(2026, 1, 1))

    def test_invalid_email_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            schemas.UserCreate(first_name="A", last_name="B", password="h", email="not-an-email")

    def test_aware_datetimes_become_naive_utc(self):
        local = datetime(2026, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        enrollment = schemas.EnrollmentCreate(
            enrollment_date=local, status="active", method="invite",
            course_id=uuid.uuid4(), student_id=uuid.uuid4(),
        )
        assert enrollment.enrollment_date == datetime(2026, 3, 1, 10, 0)
        assert enrollment.enrollment_date.tzinfo is None

    def test_completion_before_enrollment_rejected(self):
        with pytest.raises(pydantic.ValidationError, match="completion_date"):
            schemas.EnrollmentCreate(
                enrollment_date=datetime(2026, 3, 1),
                completion_date=datetime(2026, 2, 1),
                status="completed",
                method="invite",
                course_id=uuid.uuid4(),
                student_id=uuid.uuid4(),
            )

    def test_free_form_fields_keep_shape(self):
        user = schemas.UserCreate(
            first_name="A", last_name="B", password="h", email="a@learnhub.io",
            social_media={"github": "ada", "links": [{"label": "blog", "url": "https://ada.dev"}]},
        )
        assert user.social_media["links"][0]["label"] == "blog"


class TestOutput:
    def test_user_out_hides_password(self):
        assert "password" not in schemas.UserOut.model_fields
