from datetime import date

import pytest

from easistent_timetable_core.auth.session import AuthRepository, extract_developer_message
from easistent_timetable_core.auth.store import MemoryKeyValueStore, SettingsStore, TokenStore
from easistent_timetable_core.errors import AuthError, EmptyResponseError, NetworkError, SessionExpiredError
from easistent_timetable_core.utils.http import HttpResponse
from tests.test_auth.fakes import FakeAuthApi, json_response, make_token, token_body

ACCESS = make_token({"userId": 555, "schoolId": "1234", "userType": "parent"})
ACCESS_2 = make_token({"userId": "555", "schoolId": 4321})


@pytest.fixture
def api():
    return FakeAuthApi()


@pytest.fixture
def store():
    return TokenStore(MemoryKeyValueStore())


@pytest.fixture
def repository(api, store):
    return AuthRepository(api=api, store=store)


def logged_in(store: TokenStore, access: str = ACCESS, refresh: str = "refresh-1") -> None:
    store.access_token = access
    store.refresh_token = refresh
    store.school_id = 1234


class TestLogin:
    @pytest.mark.asyncio
    async def test_success_persists_session(self, repository, api, store):
        api.queue("login", json_response(200, token_body(ACCESS, user={"id": 1, "name": "Marija Kos"})))
        session = await repository.login("marija", "secret")

        assert session.access_token == ACCESS
        assert session.refresh_token == "refresh-1"
        assert session.user_name == "Marija Kos"
        assert session.user_id == "555"
        assert session.school_id == 1234
        assert store.access_token == ACCESS
        assert store.access_expiration == "2030-01-01 00:00:00"
        assert store.school_id == 1234
        assert repository.current_session() == session

    @pytest.mark.asyncio
    async def test_display_name_falls_back_to_username(self, repository, api):
        api.queue("login", json_response(200, token_body(ACCESS)))
        session = await repository.login("marija", "secret")
        assert session.user_name == "marija"

    @pytest.mark.asyncio
    async def test_undecodable_token(self, repository, api):
        api.queue("login", json_response(200, token_body("not-a-jwt")))
        session = await repository.login("marija", "secret")
        assert session.school_id is None
        assert session.user_id is None

    @pytest.mark.asyncio
    async def test_failure_uses_developer_message(self, repository, api, store):
        api.queue("login", json_response(401, {"error": {"developer_message": "Invalid username or password"}}))
        with pytest.raises(AuthError, match="Invalid username or password"):
            await repository.login("marija", "wrong")
        assert store.access_token is None

    @pytest.mark.asyncio
    async def test_failure_without_message(self, repository, api):
        api.queue("login", HttpResponse(status=502, text="<html>Bad gateway</html>"))
        with pytest.raises(AuthError, match="HTTP 502"):
            await repository.login("marija", "secret")

    @pytest.mark.asyncio
    async def test_empty_body(self, repository, api):
        api.queue("login", HttpResponse(status=200, text=""))
        with pytest.raises(EmptyResponseError):
            await repository.login("marija", "secret")


class TestRefresh:
    @pytest.mark.asyncio
    async def test_no_refresh_token(self, repository, api):
        assert await repository.refresh_if_needed() is False
        assert api.calls == []

    @pytest.mark.asyncio
    async def test_success(self, repository, api, store):
        logged_in(store)
        api.queue("refresh", json_response(200, token_body(ACCESS_2, refresh_token="refresh-2")))
        assert await repository.refresh_if_needed() is True
        assert store.access_token == ACCESS_2
        assert store.refresh_token == "refresh-2"
        assert store.school_id == 4321

    @pytest.mark.asyncio
    async def test_server_error_returns_false(self, repository, api, store):
        """刷新回傳 500 時回傳 False，不拋出例外"""
        logged_in(store)
        api.queue("refresh", HttpResponse(status=500, text="boom"))
        assert await repository.refresh_if_needed() is False
        assert store.access_token == ACCESS

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self, repository, api, store):
        logged_in(store)
        api.queue("refresh", NetworkError("connection reset"))
        assert await repository.refresh_if_needed() is False

    @pytest.mark.asyncio
    async def test_malformed_body_returns_false(self, repository, api, store):
        logged_in(store)
        api.queue("refresh", HttpResponse(status=200, text="{not json"))
        assert await repository.refresh_if_needed() is False


class TestLogout:
    @pytest.mark.asyncio
    async def test_clears_store(self, repository, api, store):
        logged_in(store)
        api.queue("logout", HttpResponse(status=204))
        assert await repository.logout() is True
        assert api.calls == [("logout", ACCESS)]
        assert repository.current_session() is None
        assert store.school_id is None

    @pytest.mark.asyncio
    async def test_server_failure_ignored(self, repository, api, store):
        logged_in(store)
        api.queue("logout", NetworkError("offline"))
        assert await repository.logout() is True
        assert store.access_token is None

    @pytest.mark.asyncio
    async def test_unexpected_error_still_clears(self, repository, api, store):
        logged_in(store)
        api.queue("logout", UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"))
        assert await repository.logout() is True
        assert store.access_token is None
        assert store.refresh_token is None

    @pytest.mark.asyncio
    async def test_keeps_settings_in_shared_store(self, api):
        backend = MemoryKeyValueStore()
        settings = SettingsStore(backend)
        settings.reminders_enabled = True
        repository = AuthRepository(api=api, store=TokenStore(backend))
        api.queue("login", json_response(200, token_body(ACCESS)))
        await repository.login("user", "pass")
        api.queue("logout", HttpResponse(status=204))
        await repository.logout()
        assert repository.current_session() is None
        assert settings.reminders_enabled is True


class TestCurrentSession:
    def test_requires_both_tokens(self, repository, store):
        store.access_token = ACCESS
        assert repository.current_session() is None
        store.refresh_token = "refresh-1"
        assert repository.current_session() is not None


class TestChildren:
    @pytest.mark.asyncio
    async def test_profiles_decoded_from_uuid(self, repository, api, store):
        logged_in(store)
        api.queue("get_children", json_response(200, {"items": [
            {"uuid": "child$555.2025.1234.10.99", "display_name": "Luka", "class_name": "7.a"},
            {"uuid": "child$555.2025.1234.x.98"},
            {"uuid": "child$555.2025.1234.10"},
        ]}))
        profiles = await repository.get_children_profiles()
        assert [(p.student_id, p.class_id) for p in profiles] == [(99, 10), (98, None)]
        assert profiles[0].display_name == "Luka"

    @pytest.mark.asyncio
    async def test_not_logged_in(self, repository, api):
        assert await repository.get_children_profiles() == []
        assert api.calls == []

    @pytest.mark.asyncio
    async def test_http_error_gives_empty_list(self, repository, api, store):
        logged_in(store)
        api.queue("get_children", HttpResponse(status=500))
        assert await repository.get_children_profiles() == []

    @pytest.mark.asyncio
    async def test_unauthorized_refreshes_and_retries(self, repository, api, store):
        logged_in(store)
        api.queue("get_children", HttpResponse(status=401), json_response(200, {"items": []}))
        api.queue("refresh", json_response(200, token_body(ACCESS_2, refresh_token="refresh-2")))
        assert await repository.get_children_profiles() == []
        assert api.calls[-1] == ("get_children", ACCESS_2)

    @pytest.mark.asyncio
    async def test_refresh_500_forces_logout(self, repository, api, store):
        """刷新失敗時強制登出並回報 session 過期"""
        logged_in(store)
        api.queue("get_children", HttpResponse(status=401))
        api.queue("refresh", HttpResponse(status=500))
        api.queue("logout", HttpResponse(status=204))
        with pytest.raises(SessionExpiredError):
            await repository.get_children_profiles()
        assert repository.current_session() is None
        assert api.count("get_children") == 1


class TestGrades:
    @pytest.mark.asyncio
    async def test_grades(self, repository, api, store):
        logged_in(store)
        api.queue("get_grades", json_response(200, {"items": [{
            "name": "Matematika",
            "short_name": "MAT",
            "id": 7,
            "semesters": [{"id": 1, "grades": [{"id": 1, "value": "5", "type_name": "pisno"}]}],
        }]}))
        grades = await repository.get_grades("child$1.2.3.4.5")
        assert grades[0].short_name == "MAT"
        assert grades[0].semesters[0].grades[0].value == "5"
        assert api.calls[0] == ("get_grades", ACCESS, "child$1.2.3.4.5")

    @pytest.mark.asyncio
    async def test_grades_forbidden_twice(self, repository, api, store):
        logged_in(store)
        api.queue("get_grades", HttpResponse(status=403), HttpResponse(status=403))
        api.queue("refresh", json_response(200, token_body(ACCESS_2)))
        api.queue("logout", HttpResponse(status=204))
        with pytest.raises(SessionExpiredError):
            await repository.get_grades("child$1.2.3.4.5")
        assert api.count("refresh") == 1
        assert store.access_token is None


def notification(id: int, created_at: str, message: str = "5 - MAT, pisno", type: str = "ocena") -> dict:
    return {"id": id, "created_at": created_at, "message": message, "type": type, "title": "Nova ocena"}


class TestFreeGrades:
    @pytest.mark.asyncio
    async def test_paginates_until_before_school_year(self, repository, api, store):
        logged_in(store)
        api.queue(
            "get_notifications",
            json_response(200, {"items": [
                notification(30, "2025-10-10 10:00:00", "4 - SLO, ustno"),
                notification(29, "2025-10-01 09:00:00", "Novo sporočilo", type="sporocilo"),
            ]}),
            json_response(200, {"items": [
                notification(20, "2025-09-15 08:00:00", "5 - MAT, pisno"),
                notification(19, "2025-08-20 08:00:00", "3 - MAT, test"),
            ]}),
        )
        grades = await repository.get_free_grades("child$1.2.3.4.5", today=date(2025, 10, 19))

        assert api.count("get_notifications") == 2
        assert api.calls[0][-1] is None
        assert api.calls[1][-1] == 29
        assert [s.name for s in grades] == ["MAT", "SLO"]
        mat = grades[0]
        assert [g.value for g in mat.semesters[0].grades] == ["5", "3"]
        assert mat.semesters[1].grades == []

    @pytest.mark.asyncio
    async def test_empty_page_stops(self, repository, api, store):
        logged_in(store)
        api.queue("get_notifications", json_response(200, {"items": []}))
        assert await repository.get_free_grades("child$1.2.3.4.5", today=date(2025, 10, 19)) == []

    @pytest.mark.asyncio
    async def test_unauthorized_mid_pagination_restarts_once(self, repository, api, store):
        logged_in(store)
        api.queue(
            "get_notifications",
            json_response(200, {"items": [notification(30, "2025-10-10 10:00:00")]}),
            HttpResponse(status=401),
            json_response(200, {"items": [notification(30, "2025-10-10 10:00:00")]}),
            json_response(200, {"items": [notification(10, "2025-08-01 10:00:00")]}),
        )
        api.queue("refresh", json_response(200, token_body(ACCESS_2)))
        grades = await repository.get_free_grades("child$1.2.3.4.5", today=date(2025, 10, 19))
        assert api.count("refresh") == 1
        assert [g.value for g in grades[0].semesters[0].grades] == ["5", "5"]


def test_extract_developer_message():
    assert extract_developer_message('{"developer_message" : "Bad credentials"}') == "Bad credentials"
    assert extract_developer_message("") is None
    assert extract_developer_message("plain text") is None
