"""
Integration tests for sign-in bootstrap against SQLite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.identity.bootstrap import SessionBootstrap, SignInIdentity

NOW = datetime(2026, 9, 1, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def bootstrap(store, settings):
    return SessionBootstrap(store, admin_email=settings.admin_email)


class TestFirstSignIn:
    @pytest.mark.asyncio
    async def test_whitelisted_student_enrolled(self, store, bootstrap):
        await store.add_to_whitelist("Ada@School.test", "AP Physics", section="P3")

        result = await bootstrap.sign_in(
            SignInIdentity(uid="stu-1", email="ada@school.test", display_name="Ada"), now=NOW
        )

        assert result.created is True
        assert result.has_access is True
        assert result.profile.role == "STUDENT"
        assert result.profile.class_type == "AP Physics"
        assert result.profile.enrolled_classes == ["AP Physics"]
        assert result.profile.name == "Ada"

    @pytest.mark.asyncio
    async def test_unlisted_visitor_restricted(self, store, bootstrap):
        result = await bootstrap.sign_in(SignInIdentity(uid="v1", email="v@else.where"), now=NOW)

        assert result.has_access is False
        assert result.profile.is_whitelisted is False
        assert result.profile.enrolled_classes == []

    @pytest.mark.asyncio
    async def test_admin_email(self, store, bootstrap):
        result = await bootstrap.sign_in(SignInIdentity(uid="boss", email="Head@School.test"), now=NOW)

        assert result.is_admin is True
        assert result.profile.role == "ADMIN"
        assert result.profile.is_whitelisted is True

    @pytest.mark.asyncio
    async def test_admin_claim(self, store, bootstrap):
        identity = SignInIdentity(uid="ta", email="ta@school.test", claims={"admin": True})

        result = await bootstrap.sign_in(identity, now=NOW)

        assert result.profile.role == "ADMIN"


class TestReturningSignIn:
    @pytest.mark.asyncio
    async def test_new_whitelist_class_merged(self, store, bootstrap):
        identity = SignInIdentity(uid="stu-1", email="ada@school.test")
        await store.add_to_whitelist("ada@school.test", "AP Physics")
        await bootstrap.sign_in(identity, now=NOW)

        entry = await store.add_to_whitelist("ada@school.test", "Chemistry")
        result = await bootstrap.sign_in(identity, now=NOW + timedelta(days=1))

        assert entry.class_types == ("AP Physics", "Chemistry")
        assert entry.class_type == "AP Physics"
        assert result.created is False
        assert result.profile.enrolled_classes == ["AP Physics", "Chemistry"]
        assert result.profile.class_type == "AP Physics"

    @pytest.mark.asyncio
    async def test_removed_from_whitelist_loses_enrollment(self, store, bootstrap):
        await store.add_to_whitelist("ada@school.test", "AP Physics")
        await bootstrap.sign_in(SignInIdentity(uid="stu-1", email="ada@school.test"), now=NOW)

        result = await bootstrap.sign_in(SignInIdentity(uid="stu-1", email="ada@other.test"), now=NOW)

        assert result.is_whitelisted is False
        assert result.profile.enrolled_classes == []

    @pytest.mark.asyncio
    async def test_xp_untouched_by_sign_in(self, store, bootstrap, awards):
        identity = SignInIdentity(uid="stu-1", email="ada@school.test")
        await store.add_to_whitelist("ada@school.test", "AP Physics")
        await bootstrap.sign_in(identity, now=NOW)
        await awards.award_question_xp("stu-1", "res-1", "q1", 25, "AP Physics")

        await bootstrap.sign_in(identity, now=NOW + timedelta(hours=2))

        assert (await store.get_ledger("stu-1")).xp == 25
