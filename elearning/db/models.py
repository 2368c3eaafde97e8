import enum
import uuid

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text, Uuid
)
from sqlalchemy.orm import relationship

from .database import Base
from .types import FreeForm, IdList, StringList, utcnow


class UserRole(str, enum.Enum):
    student = "student"
    instructor = "instructor"
    admin = "admin"


class LessonAccess(str, enum.Enum):
    private = "private"
    public = "public"


class WatchState(str, enum.Enum):
    started = "started"
    completed = "completed"
    paused = "paused"


class EnrollmentStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


def _choice(enum_cls, name):
    # Stored as a constrained string holding the enum value
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=20,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column("firstName", String(100), nullable=False)
    last_name = Column("lastName", String(100), nullable=False)
    password = Column(Text, nullable=False)  # already hashed
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    role = Column(_choice(UserRole, "user_role"), nullable=False, default=UserRole.student)
    bio = Column(Text, nullable=True)
    social_media = Column("socialMedia", FreeForm, nullable=True)
    profile_picture = Column("profilePicture", Text, nullable=True)
    designation = Column(String(200), nullable=True)

    taught_courses = relationship("Course", back_populates="instructor", passive_deletes=True)
    enrollments = relationship("Enrollment", back_populates="student", passive_deletes=True)
    reports = relationship("Report", back_populates="student", passive_deletes=True)
    testimonials = relationship("Testimonial", back_populates="user", passive_deletes=True)
    watches = relationship("Watch", back_populates="user", passive_deletes=True)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    thumbnail = Column(Text, nullable=False)

    courses = relationship("Course", back_populates="category", passive_deletes=True)


class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_courses_price_non_negative"),
    )
    __auto_timestamps__ = ("created_on", "modified_on")

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    subtitle = Column(String(300), nullable=True)
    description = Column(Text, nullable=True)
    thumbnail = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=False)
    learning = Column(StringList, nullable=False, default=list)
    created_on = Column("createdOn", DateTime, nullable=False, default=utcnow)
    modified_on = Column("modifiedOn", DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    category_id = Column(
        "categoryId", Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    instructor_id = Column(
        "instructorId", Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    quizset_id = Column(
        "quizsetId", Uuid, ForeignKey("quizsets.id", ondelete="SET NULL"), nullable=True, index=True
    )

    category = relationship("Category", back_populates="courses")
    instructor = relationship("User", back_populates="taught_courses")
    quizset = relationship("Quizset", back_populates="courses")
    modules = relationship("Module", back_populates="course", order_by="Module.order", passive_deletes=True)
    testimonials = relationship("Testimonial", back_populates="course", passive_deletes=True)
    enrollments = relationship("Enrollment", back_populates="course", passive_deletes=True)
    reports = relationship("Report", back_populates="course", passive_deletes=True)


class Module(Base):
    __tablename__ = "modules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=False)
    slug = Column(String(200), nullable=False, index=True)
    order = Column(Integer, nullable=False)  # position inside the course

    course_id = Column(
        "courseId", Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )

    course = relationship("Course", back_populates="modules")
    lessons = relationship("Lesson", back_populates="module", order_by="Lesson.order", passive_deletes=True)
    watches = relationship("Watch", back_populates="module", passive_deletes=True)


class Lesson(Base):
    __tablename__ = "lessons"
    __table_args__ = (
        CheckConstraint("duration >= 0", name="ck_lessons_duration_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # seconds
    video_url = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=False)
    slug = Column(String(200), nullable=False, index=True)
    access = Column(_choice(LessonAccess, "lesson_access"), nullable=False, default=LessonAccess.private)
    order = Column(Integer, nullable=False)

    module_id = Column(
        "moduleId", Uuid, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )

    module = relationship("Module", back_populates="lessons")
    watches = relationship("Watch", back_populates="lesson", passive_deletes=True)


class Quizset(Base):
    __tablename__ = "quizsets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    slug = Column(String(200), nullable=True, index=True)
    active = Column(Boolean, nullable=False, default=False)

    quizzes = relationship("Quiz", back_populates="quizset", passive_deletes=True)
    courses = relationship("Course", back_populates="quizset", passive_deletes=True)


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    explanations = Column(Text, nullable=True)
    slug = Column(String(200), nullable=True, index=True)
    options = Column(FreeForm, nullable=False, default=list)
    mark = Column(Integer, nullable=False, default=5)

    quizset_id = Column(
        "quizsetId", Uuid, ForeignKey("quizsets.id", ondelete="CASCADE"), nullable=False, index=True
    )

    quizset = relationship("Quizset", back_populates="quizzes")


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    assessments = Column(FreeForm, nullable=False, default=list)  # attempt records
    other_marks = Column("otherMarks", Float, nullable=False)

    report = relationship("Report", back_populates="assessment", uselist=False, passive_deletes=True)


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        CheckConstraint(
            "completion_date IS NULL OR completion_date >= enrollment_date",
            name="ck_enrollments_completion_after_enrollment",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    enrollment_date = Column(DateTime, nullable=False, default=utcnow)
    status = Column(_choice(EnrollmentStatus, "enrollment_status"), nullable=False)
    completion_date = Column(DateTime, nullable=True)
    method = Column(String(50), nullable=False)

    course_id = Column(
        "courseId", Uuid, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    student_id = Column(
        "studentId", Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    course = relationship("Course", back_populates="enrollments")
    student = relationship("User", back_populates="enrollments")


class Report(Base):
    __tablename__ = "reports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    total_completed_lessons = Column("totalCompletedLessons", IdList, nullable=False, default=list)
    total_completed_modules = Column("totalCompletedModules", IdList, nullable=False, default=list)
    completion_date = Column(DateTime, nullable=True)

    course_id = Column(
        "courseId", Uuid, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    student_id = Column(
        "studentId", Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quiz_assessment_id = Column(
        "quizAssessmentId",
        Uuid,
        ForeignKey("assessments.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
        index=True,
    )

    course = relationship("Course", back_populates="reports")
    student = relationship("User", back_populates="reports")
    assessment = relationship("Assessment", back_populates="report")


class Testimonial(Base):
    __tablename__ = "testimonials"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_testimonials_rating_range"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    content = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)

    user_id = Column(
        "userId", Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    course_id = Column(
        "courseId", Uuid, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    user = relationship("User", back_populates="testimonials")
    course = relationship("Course", back_populates="testimonials")


class Watch(Base):
    __tablename__ = "watches"
    __table_args__ = (
        CheckConstraint('"lastTime" >= 0', name="ck_watches_last_time_non_negative"),
    )
    __auto_timestamps__ = ("created_at", "modified_at")

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    state = Column(_choice(WatchState, "watch_state"), nullable=False, default=WatchState.started)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    modified_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_time = Column("lastTime", Integer, nullable=False, default=0)  # seconds

    lesson_id = Column(
        "lessonId", Uuid, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        "userId", Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    module_id = Column(
        "moduleId", Uuid, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )

    lesson = relationship("Lesson", back_populates="watches")
    user = relationship("User", back_populates="watches")
    module = relationship("Module", back_populates="watches")
