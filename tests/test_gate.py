"""Request gate decisions across paths, devices, sessions and roles."""

from __future__ import annotations

from typing import List, Mapping, Optional

import pytest

from datastore.mock_backend import MockBackend
from models.records import AuthUser
from services.gate import (
    DeviceClass,
    GateDecision,
    GateOutcome,
    GatePolicy,
    RequestGate,
)
from services.roles import BackendRoleResolver
from services.session import CookieUpdate, SessionRefresh

from conftest import DESKTOP_UA, MOBILE_UA

ALICE = AuthUser(id="user-alice", email="alice@example.com")


class StubSessions:
    def __init__(self, user: Optional[AuthUser] = None, cookies: Optional[List[CookieUpdate]] = None) -> None:
        self.user = user
        self.cookies = cookies or []
        self.refresh_calls = 0

    def refresh(self, cookies: Mapping[str, str]) -> SessionRefresh:
        self.refresh_calls += 1
        return SessionRefresh(user=self.user, cookies=list(self.cookies))

    def get_current_user(self, cookies: Mapping[str, str]) -> Optional[AuthUser]:
        return self.user


class StubRoles:
    def __init__(self, admin: bool = False) -> None:
        self.admin = admin
        self.calls: List[str] = []

    def is_admin(self, user_id: str) -> bool:
        self.calls.append(user_id)
        return self.admin


class ExplodingBackend(MockBackend):
    def exists(self, table, where):
        raise ConnectionError("backend unavailable")


def _gate(user: Optional[AuthUser] = None, admin: bool = False, cookies=None) -> RequestGate:
    return RequestGate(sessions=StubSessions(user, cookies), roles=StubRoles(admin))


def test_admin_path_without_session_redirects_to_login() -> None:
    result = _gate().evaluate("/admin/restaurants", MOBILE_UA, {})

    assert result.decision == GateDecision.redirect_to("/login?next=/admin/restaurants")


def test_admin_path_login_redirect_keeps_query() -> None:
    result = _gate().evaluate("/admin/restaurants", DESKTOP_UA, {}, query="page=2")

    assert result.decision.location == "/login?next=/admin/restaurants%3Fpage%3D2"


def test_admin_path_for_non_admin_redirects_home() -> None:
    result = _gate(ALICE, admin=False).evaluate("/admin/restaurants", MOBILE_UA, {})

    assert result.decision == GateDecision.redirect_to("/")


def test_admin_path_for_admin_continues_on_desktop() -> None:
    result = _gate(ALICE, admin=True).evaluate("/admin/restaurants", DESKTOP_UA, {})

    assert result.decision.outcome is GateOutcome.proceed
    assert result.context.is_admin is True


def test_desktop_home_redirects_to_notice() -> None:
    result = _gate(ALICE).evaluate("/home", DESKTOP_UA, {})

    assert result.decision == GateDecision.redirect_to("/desktop-info")
    assert result.context.device is DeviceClass.desktop


def test_mobile_home_continues() -> None:
    result = _gate(ALICE).evaluate("/home", MOBILE_UA, {})

    assert result.decision.outcome is GateOutcome.proceed
    assert result.decision.location is None


@pytest.mark.parametrize(
    "path",
    ["/login", "/signup", "/reset-password", "/confirmation", "/forgot-password", "/auth/callback", "/login/"],
)
def test_desktop_auth_flow_is_allowed(path: str) -> None:
    result = _gate().evaluate(path, DESKTOP_UA, {})

    assert result.decision.outcome is GateOutcome.proceed


def test_desktop_notice_for_desktop_continues() -> None:
    result = _gate().evaluate("/desktop-info", DESKTOP_UA, {})

    assert result.decision.outcome is GateOutcome.proceed


def test_desktop_notice_for_mobile_redirects_home() -> None:
    result = _gate().evaluate("/desktop-info", MOBILE_UA, {})

    assert result.decision == GateDecision.redirect_to("/")


@pytest.mark.parametrize(
    "path",
    ["/api/restaurants", "/api", "/static/css/app.css", "/_next/chunk", "/favicon.ico", "/fonts/brand.woff2"],
)
def test_api_and_static_paths_are_never_redirected(path: str) -> None:
    result = _gate().evaluate(path, DESKTOP_UA, {})

    assert result.decision.outcome is GateOutcome.proceed


def test_api_admin_path_is_not_redirected() -> None:
    result = _gate().evaluate("/api/admin/restaurants", DESKTOP_UA, {})

    assert result.decision.outcome is GateOutcome.proceed


def test_prefix_lookalikes_are_not_exempt() -> None:
    policy = GatePolicy()

    assert not policy.is_exempt("/apiary")
    assert not policy.is_admin_path("/administrator")
    assert not policy.is_exempt("/restaurants/big.mac")


def test_private_paths_are_blocked() -> None:
    result = _gate(ALICE, admin=True).evaluate("/__internal/state", MOBILE_UA, {})

    assert result.decision == GateDecision.block()


def test_missing_user_agent_is_desktop() -> None:
    result = _gate().evaluate("/home", None, {})

    assert result.context.device is DeviceClass.desktop
    assert result.decision.location == "/desktop-info"


@pytest.mark.parametrize("token", ["Android", "iPhone", "iPad", "iPod", "Mobile"])
def test_each_mobile_token_classifies_as_mobile(token: str) -> None:
    assert GatePolicy().classify_device(f"Mozilla/5.0 ({token}) Test") is DeviceClass.mobile


def test_mobile_tokens_are_configuration() -> None:
    policy = GatePolicy(mobile_tokens=("KaiOS",))
    gate = RequestGate(sessions=StubSessions(), roles=StubRoles(), policy=policy)

    assert gate.evaluate("/home", "Mozilla/5.0 (KaiOS 3.0)", {}).decision.outcome is GateOutcome.proceed
    assert gate.evaluate("/home", MOBILE_UA, {}).decision.location == "/desktop-info"


def test_session_is_refreshed_even_for_exempt_paths() -> None:
    sessions = StubSessions(ALICE)
    gate = RequestGate(sessions=sessions, roles=StubRoles())

    gate.evaluate("/api/health", DESKTOP_UA, {})

    assert sessions.refresh_calls == 1


def test_refreshed_cookies_travel_with_redirects() -> None:
    cookies = [CookieUpdate(name="bitebox-access-token", value="fresh", max_age=3600)]
    result = _gate(ALICE, cookies=cookies).evaluate("/home", DESKTOP_UA, {})

    assert result.decision.outcome is GateOutcome.redirect
    assert result.cookies == cookies


def test_role_lookup_skipped_without_user() -> None:
    roles = StubRoles(admin=True)
    gate = RequestGate(sessions=StubSessions(), roles=roles)

    result = gate.evaluate("/home", MOBILE_UA, {})

    assert roles.calls == []
    assert result.context.is_admin is None


def test_role_lookup_failure_is_treated_as_non_admin() -> None:
    gate = RequestGate(sessions=StubSessions(ALICE), roles=BackendRoleResolver(ExplodingBackend()))

    result = gate.evaluate("/admin/restaurants", MOBILE_UA, {})

    assert result.context.is_admin is False
    assert result.decision == GateDecision.redirect_to("/")


def test_backend_role_resolver_reads_admin_users() -> None:
    backend = MockBackend()
    resolver = BackendRoleResolver(backend)

    assert resolver.is_admin(ALICE.id) is False
    resolver.grant(ALICE.id)
    resolver.grant(ALICE.id)

    assert resolver.is_admin(ALICE.id) is True
    assert len(backend.select("admin_users")) == 1
