# tests/test_session.py

from dataclasses import replace

import pytest

from cityflow.config import UserRole
from cityflow.shared.session import SessionContext

from tests.conftest import InMemoryDirectoryRepository


@pytest.fixture
def context():
    return SessionContext()


@pytest.mark.unit
class TestSessionContext:

    def test_sign_in_and_out(self, context, directory):
        profile = directory.profiles["u-sam"]
        context.sign_in(profile)

        assert context.get("u-sam") is profile
        assert len(context) == 1
        assert context.sign_out("u-sam")
        assert context.get("u-sam") is None
        assert not context.sign_out("u-sam")

    async def test_resolve_loads_once(self, context, directory):
        calls = []

        async def loader(user_id):
            calls.append(user_id)
            return await directory.get_profile(user_id)

        first = await context.resolve("u-lena", loader)
        second = await context.resolve("u-lena", loader)

        assert first.full_name == second.full_name == "Lena Vogt"
        assert calls == ["u-lena"]

    async def test_inactive_and_unknown_users_are_not_cached(self, context, directory):
        assert await context.resolve("u-gone", directory.get_profile) is None
        assert await context.resolve("u-nobody", directory.get_profile) is None
        assert len(context) == 0

    async def test_clear(self, context):
        directory = InMemoryDirectoryRepository()
        context.sign_in(type("Profile", (), {"id": "u-1"})())
        context.clear()
        assert len(context) == 0
        assert await context.resolve("u-1", directory.get_profile) is None


@pytest.mark.unit
class TestSessionExpiry:

    @pytest.fixture
    def clock(self):
        return [1000.0]

    @pytest.fixture
    def timed(self, clock):
        return SessionContext(ttl_seconds=300, clock=lambda: clock[0])

    async def test_profile_reloaded_after_ttl(self, timed, clock, directory):
        calls = []

        async def loader(user_id):
            calls.append(user_id)
            return await directory.get_profile(user_id)

        await timed.resolve("u-sam", loader)
        clock[0] += 299
        await timed.resolve("u-sam", loader)
        assert calls == ["u-sam"]

        clock[0] += 1
        await timed.resolve("u-sam", loader)
        assert calls == ["u-sam", "u-sam"]

    async def test_deactivated_user_rejected_after_ttl(self, timed, clock, directory):
        assert await timed.resolve("u-sam", directory.get_profile) is not None

        directory.profiles["u-sam"] = replace(directory.profiles["u-sam"], is_active=False)
        assert await timed.resolve("u-sam", directory.get_profile) is not None

        clock[0] += 300
        assert await timed.resolve("u-sam", directory.get_profile) is None
        assert len(timed) == 0

    async def test_role_change_seen_after_ttl(self, timed, clock, directory):
        await timed.resolve("u-sam", directory.get_profile)
        directory.profiles["u-sam"] = replace(directory.profiles["u-sam"], role=UserRole.ADMIN)

        clock[0] += 300
        profile = await timed.resolve("u-sam", directory.get_profile)
        assert profile.role == UserRole.ADMIN

    def test_zero_ttl_never_expires(self, clock, directory):
        context = SessionContext(ttl_seconds=0, clock=lambda: clock[0])
        context.sign_in(directory.profiles["u-sam"])
        clock[0] += 86400
        assert context.get("u-sam") is not None
