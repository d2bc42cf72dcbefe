from typing import List, Optional

import pytest

from easistent_timetable_core.auth.retry import RefreshRetryPolicy
from easistent_timetable_core.errors import NetworkError, SessionExpiredError, UnauthorizedError


class FakeSession:
    def __init__(self, token: Optional[str] = "old", refresh_ok: bool = True):
        self.access_token = token
        self.refresh_ok = refresh_ok
        self.refresh_calls = 0
        self.logout_calls = 0

    async def refresh_if_needed(self) -> bool:
        self.refresh_calls += 1
        if self.refresh_ok:
            self.access_token = "new"
        return self.refresh_ok

    async def logout(self) -> bool:
        self.logout_calls += 1
        self.access_token = None
        return True


def recording_call(tokens: List[str], unauthorized_for: set):
    async def call(token: str) -> str:
        tokens.append(token)
        if token in unauthorized_for:
            raise UnauthorizedError(status=401)
        return f"data:{token}"
    return call


class TestRefreshRetryPolicy:
    @pytest.mark.asyncio
    async def test_success_without_refresh(self):
        session = FakeSession()
        tokens: List[str] = []
        result = await RefreshRetryPolicy(session).run(recording_call(tokens, set()))
        assert result == "data:old"
        assert session.refresh_calls == 0

    @pytest.mark.asyncio
    async def test_refresh_then_retry_once(self):
        session = FakeSession()
        tokens: List[str] = []
        result = await RefreshRetryPolicy(session).run(recording_call(tokens, {"old"}))
        assert result == "data:new"
        assert tokens == ["old", "new"]
        assert session.refresh_calls == 1
        assert session.logout_calls == 0

    @pytest.mark.asyncio
    async def test_failed_refresh_forces_logout(self):
        session = FakeSession(refresh_ok=False)
        tokens: List[str] = []
        with pytest.raises(SessionExpiredError):
            await RefreshRetryPolicy(session).run(recording_call(tokens, {"old"}))
        assert tokens == ["old"]
        assert session.logout_calls == 1

    @pytest.mark.asyncio
    async def test_second_unauthorized_forces_logout(self):
        """重試後仍未授權時不再刷新第二次"""
        session = FakeSession()
        tokens: List[str] = []
        with pytest.raises(SessionExpiredError):
            await RefreshRetryPolicy(session).run(recording_call(tokens, {"old", "new"}))
        assert tokens == ["old", "new"]
        assert session.refresh_calls == 1
        assert session.logout_calls == 1

    @pytest.mark.asyncio
    async def test_not_logged_in(self):
        session = FakeSession(token=None)
        with pytest.raises(SessionExpiredError):
            await RefreshRetryPolicy(session).run(recording_call([], set()))
        assert session.refresh_calls == 0

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        session = FakeSession()

        async def call(token: str) -> str:
            raise NetworkError("offline")

        with pytest.raises(NetworkError):
            await RefreshRetryPolicy(session).run(call)
        assert session.refresh_calls == 0
        assert session.logout_calls == 0
