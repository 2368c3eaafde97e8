from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional
from uuid import UUID

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, EmailStr, Field, model_validator

from .db.models import EnrollmentStatus, LessonAccess, UserRole, WatchState
from .db.types import utcnow


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDateTime = Annotated[datetime, AfterValidator(_naive_utc)]


def _ref(name: str, storage_name: str):
    # Accept both the python name and the stored column name
    return Field(validation_alias=AliasChoices(name, storage_name))


class CreateSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ReadSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Users ---

class UserCreate(CreateSchema):
    first_name: str = Field(min_length=1, max_length=100, validation_alias=AliasChoices("first_name", "firstName"))
    last_name: str = Field(min_length=1, max_length=100, validation_alias=AliasChoices("last_name", "lastName"))
    password: str = Field(min_length=1)  # hashed by the access layer
    email: EmailStr
    phone: Optional[str] = None
    role: UserRole = UserRole.student
    bio: Optional[str] = None
    social_media: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("social_media", "socialMedia")
    )
    profile_picture: Optional[str] = Field(
        None, validation_alias=AliasChoices("profile_picture", "profilePicture")
    )
    designation: Optional[str] = None


class UserOut(ReadSchema):
    id: UUID
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    bio: Optional[str] = None
    social_media: Optional[Dict[str, Any]] = None
    profile_picture: Optional[str] = None
    designation: Optional[str] = None


# --- Catalogue ---

class CategoryCreate(CreateSchema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    thumbnail: str


class CategoryOut(ReadSchema):
    id: UUID
    title: str
    description: Optional[str] = None
    thumbnail: str


class CourseCreate(CreateSchema):
    title: str = Field(min_length=1, max_length=200)
    subtitle: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    price: float = Field(0, ge=0)
    active: bool = False
    learning: List[str] = Field(default_factory=list)
    category_id: Optional[UUID] = Field(None, validation_alias=AliasChoices("category_id", "categoryId"))
    instructor_id: Optional[UUID] = Field(None, validation_alias=AliasChoices("instructor_id", "instructorId"))
    quizset_id: Optional[UUID] = Field(None, validation_alias=AliasChoices("quizset_id", "quizsetId"))


class CourseOut(ReadSchema):
    id: UUID
    title: str
    subtitle: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    price: float
    active: bool
    learning: List[str] = []
    created_on: datetime
    modified_on: datetime
    category_id: Optional[UUID] = None
    instructor_id: Optional[UUID] = None
    quizset_id: Optional[UUID] = None


class ModuleCreate(CreateSchema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    active: bool = False
    slug: str = Field(min_length=1, max_length=200)
    order: int
    course_id: UUID = _ref("course_id", "courseId")


class ModuleOut(ReadSchema):
    id: UUID
    title: str
    description: Optional[str] = None
    active: bool
    slug: str
    order: int
    course_id: UUID


class LessonCreate(CreateSchema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    duration: int = Field(0, ge=0)
    video_url: Optional[str] = None
    active: bool = False
    slug: str = Field(min_length=1, max_length=200)
    access: LessonAccess = LessonAccess.private
    order: int
    module_id: UUID = _ref("module_id", "moduleId")


class LessonOut(ReadSchema):
    id: UUID
    title: str
    description: Optional[str] = None
    duration: int
    video_url: Optional[str] = None
    active: bool
    slug: str
    access: LessonAccess
    order: int
    module_id: UUID


class ModuleDetail(ModuleOut):
    lessons: List[LessonOut] = []


class CourseDetail(CourseOut):
    """Course with its modules and their lessons; needs ``load=("modules.lessons",)``."""

    modules: List[ModuleDetail] = []


# --- Quizzes ---

class QuizsetCreate(CreateSchema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    slug: Optional[str] = None
    active: bool = False


class QuizsetOut(ReadSchema):
    id: UUID
    title: str
    description: Optional[str] = None
    slug: Optional[str] = None
    active: bool


class QuizCreate(CreateSchema):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    explanations: Optional[str] = None
    slug: Optional[str] = None
    options: List[Any] = Field(default_factory=list)
    mark: int = 5
    quizset_id: UUID = _ref("quizset_id", "quizsetId")


class QuizOut(ReadSchema):
    id: UUID
    title: str
    description: Optional[str] = None
    explanations: Optional[str] = None
    slug: Optional[str] = None
    options: List[Any] = []
    mark: int
    quizset_id: UUID


class AssessmentCreate(CreateSchema):
    assessments: List[Any] = Field(default_factory=list)
    other_marks: float = _ref("other_marks", "otherMarks")


class AssessmentOut(ReadSchema):
    id: UUID
    assessments: List[Any] = []
    other_marks: float


# --- Progress ---

class EnrollmentCreate(CreateSchema):
    enrollment_date: UtcDateTime = Field(default_factory=utcnow)
    status: EnrollmentStatus
    completion_date: Optional[UtcDateTime] = None
    method: str = Field(min_length=1, max_length=50)
    course_id: UUID = _ref("course_id", "courseId")
    student_id: UUID = _ref("student_id", "studentId")

    @model_validator(mode="after")
    def check_completion_after_enrollment(self):
        if self.completion_date is not None and self.completion_date < self.enrollment_date:
            raise ValueError("completion_date must not be earlier than enrollment_date")
        return self


class EnrollmentOut(ReadSchema):
    id: UUID
    enrollment_date: datetime
    status: EnrollmentStatus
    completion_date: Optional[datetime] = None
    method: str
    course_id: UUID
    student_id: UUID


class ReportCreate(CreateSchema):
    total_completed_lessons: List[UUID] = Field(
        default_factory=list,
        validation_alias=AliasChoices("total_completed_lessons", "totalCompletedLessons"),
    )
    total_completed_modules: List[UUID] = Field(
        default_factory=list,
        validation_alias=AliasChoices("total_completed_modules", "totalCompletedModules"),
    )
    completion_date: Optional[UtcDateTime] = None
    course_id: UUID = _ref("course_id", "courseId")
    student_id: UUID = _ref("student_id", "studentId")
    quiz_assessment_id: Optional[UUID] = Field(
        None, validation_alias=AliasChoices("quiz_assessment_id", "quizAssessmentId")
    )


class ReportOut(ReadSchema):
    id: UUID
    total_completed_lessons: List[UUID] = []
    total_completed_modules: List[UUID] = []
    completion_date: Optional[datetime] = None
    course_id: UUID
    student_id: UUID
    quiz_assessment_id: Optional[UUID] = None


class TestimonialCreate(CreateSchema):
    content: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    user_id: UUID = _ref("user_id", "userId")
    course_id: UUID = _ref("course_id", "courseId")


class TestimonialOut(ReadSchema):
    id: UUID
    content: str
    rating: int
    user_id: UUID
    course_id: UUID


class WatchCreate(CreateSchema):
    state: WatchState = WatchState.started
    last_time: int = Field(0, ge=0, validation_alias=AliasChoices("last_time", "lastTime"))
    lesson_id: UUID = _ref("lesson_id", "lessonId")
    user_id: UUID = _ref("user_id", "userId")
    module_id: UUID = _ref("module_id", "moduleId")


class WatchOut(ReadSchema):
    id: UUID
    state: WatchState
    created_at: datetime
    modified_at: datetime
    last_time: int
    lesson_id: UUID
    user_id: UUID
    module_id: UUID
