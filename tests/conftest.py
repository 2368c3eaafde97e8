"""Shared fixtures: a throwaway SQLite database per test and record factories."""

import itertools

import pytest
import pytest_asyncio

from elearning.db.database import init_models, make_engine, make_sessionmaker
from elearning.services import repositories


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'elearning.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


class Factory:
    """Creates valid records with sensible defaults; keyword arguments override."""

    _counter = itertools.count(1)

    def __init__(self, session):
        self.session = session

    async def user(self, **fields):
        n = next(self._counter)
        values = {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "password": "$2b$12$hashedhashedhashedhashed",
            "email": f"user{n}@learnhub.io",
        }
        values.update(fields)
        return await repositories.users.create(self.session, **values)

    async def category(self, **fields):
        values = {"title": "Programming", "thumbnail": "programming.png"}
        values.update(fields)
        return await repositories.categories.create(self.session, **values)

    async def course(self, **fields):
        values = {"title": "Intro to Go", "description": "Learn Go from scratch"}
        values.update(fields)
        return await repositories.courses.create(self.session, **values)

    async def module(self, course, **fields):
        n = next(self._counter)
        values = {"title": f"Module {n}", "slug": f"module-{n}", "order": n, "course_id": course.id}
        values.update(fields)
        return await repositories.modules.create(self.session, **values)

    async def lesson(self, module, **fields):
        n = next(self._counter)
        values = {"title": f"Lesson {n}", "slug": f"lesson-{n}", "order": n, "module_id": module.id}
        values.update(fields)
        return await repositories.lessons.create(self.session, **values)

    async def quizset(self, **fields):
        values = {"title": "Go basics quiz"}
        values.update(fields)
        return await repositories.quizsets.create(self.session, **values)

    async def enrollment(self, course, student, **fields):
        values = {"course_id": course.id, "student_id": student.id, "status": "active", "method": "self-signup"}
        values.update(fields)
        return await repositories.enrollments.create(self.session, **values)

    async def watch(self, lesson, user, **fields):
        values = {"lesson_id": lesson.id, "module_id": lesson.module_id, "user_id": user.id}
        values.update(fields)
        return await repositories.watches.create(self.session, **values)


@pytest.fixture
def factory(session):
    return Factory(session)
