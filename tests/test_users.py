"""Users: email uniqueness, roles and free-form social links."""

import pytest

from elearning.db.models import UserRole
from elearning.errors import UniquenessConflict, ValidationError
from elearning.services.repositories import get_user_by_email, users

pytestmark = pytest.mark.asyncio


async def test_second_user_with_same_email_conflicts(factory):
    await factory.user(email="ada@learnhub.io")

    with pytest.raises(UniquenessConflict) as excinfo:
        await factory.user(email="ada@learnhub.io", first_name="Other")

    assert excinfo.value.field == "email"
    assert isinstance(excinfo.value, ValidationError)


async def test_updating_to_taken_email_conflicts(factory, session):
    await factory.user(email="ada@learnhub.io")
    grace = await factory.user(email="grace@learnhub.io")

    with pytest.raises(UniquenessConflict):
        await users.update(session, grace.id, email="ada@learnhub.io")


async def test_keeping_own_email_is_not_a_conflict(factory, session):
    ada = await factory.user(email="ada@learnhub.io")

    updated = await users.update(session, ada.id, email="ada@learnhub.io", bio="Analyst")

    assert updated.bio == "Analyst"


async def test_role_defaults_to_student(factory):
    user = await factory.user()
    assert user.role is UserRole.student


async def test_unknown_role_rejected(factory):
    with pytest.raises(ValidationError):
        await factory.user(role="superuser")


async def test_missing_required_field_rejected(session):
    with pytest.raises(ValidationError) as excinfo:
        await users.create(session, first_name="Ada", password="hash", email="ada@learnhub.io")

    assert any("last_name" in error["loc"] for error in excinfo.value.errors)


async def test_social_media_round_trip(factory, session, session_factory):
    links = {"github": "ada", "profiles": [{"site": "mastodon", "handle": "@ada"}]}
    user = await factory.user(socialMedia=links, role="instructor")
    await session.commit()

    async with session_factory() as fresh:
        stored = await users.get(fresh, user.id)

    assert stored.social_media == links
    assert stored.role is UserRole.instructor


async def test_lookup_by_email(factory, session):
    user = await factory.user(email="lin@learnhub.io")

    assert (await get_user_by_email(session, "lin@learnhub.io")).id == user.id
    assert (await users.get_by(session, email="lin@learnhub.io")).id == user.id
    assert await get_user_by_email(session, "nobody@learnhub.io") is None
