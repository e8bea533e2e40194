"""Per-request gate: session refresh, role check, admin and device-class routing.

The gate runs ahead of every page handler. It always refreshes the session
first, because the refreshed cookies must reach the browser even when the
request ends in a redirect. It then picks exactly one outcome:

* ``continue`` - serve the request as asked;
* ``redirect`` - send the client to ``location``;
* ``block`` - answer with a substitute "not found" response.

API calls and static assets are never redirected. Admin pages require an
authenticated admin and are otherwise exempt from device gating. Everything
else is meant for phones and tablets: desktop browsers land on the desktop
notice page unless they are in the middle of an authentication flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import List, Mapping, Optional, Tuple
from urllib.parse import quote

from datastore.mock_backend import build_default_backend
from models.records import AuthUser
from services.roles import BackendRoleResolver, RoleResolver
from services.session import CookieUpdate, SessionProvider, build_default_session_provider
from settings import DEFAULT_MOBILE_TOKENS, get_settings

logger = logging.getLogger(__name__)


class DeviceClass(str, Enum):
    mobile = "mobile"
    desktop = "desktop"


class GateOutcome(str, Enum):
    proceed = "continue"
    redirect = "redirect"
    block = "block"


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    location: Optional[str] = None

    @classmethod
    def proceed(cls) -> "GateDecision":
        return cls(GateOutcome.proceed)

    @classmethod
    def redirect_to(cls, location: str) -> "GateDecision":
        return cls(GateOutcome.redirect, location)

    @classmethod
    def block(cls) -> "GateDecision":
        return cls(GateOutcome.block)


@dataclass(frozen=True)
class GatePolicy:
    """Path rules and redirect targets; all of it is data, not branching."""

    admin_prefix: str = "/admin"
    api_prefix: str = "/api"
    static_prefixes: Tuple[str, ...] = ("/_next", "/static")
    static_extensions: Tuple[str, ...] = (
        "png", "jpg", "jpeg", "gif", "svg", "ico", "css", "js", "woff", "woff2", "json",
    )
    private_prefix: str = "/__"
    login_path: str = "/login"
    home_path: str = "/"
    desktop_notice_path: str = "/desktop-info"
    auth_allow_list: Tuple[str, ...] = (
        "/login",
        "/signup",
        "/reset-password",
        "/confirmation",
        "/forgot-password",
    )
    auth_prefix: str = "/auth"
    mobile_tokens: Tuple[str, ...] = DEFAULT_MOBILE_TOKENS

    def is_exempt(self, path: str) -> bool:
        if _is_under(path, self.api_prefix):
            return True
        if any(_is_under(path, prefix) for prefix in self.static_prefixes):
            return True
        _, dot, extension = path.rpartition(".")
        return bool(dot) and "/" not in extension and extension.lower() in self.static_extensions

    def is_private(self, path: str) -> bool:
        return path.startswith(self.private_prefix)

    def is_admin_path(self, path: str) -> bool:
        return _is_under(path, self.admin_prefix)

    def is_auth_flow(self, path: str) -> bool:
        normalized = _normalize(path)
        return normalized in self.auth_allow_list or _is_under(path, self.auth_prefix)

    def classify_device(self, user_agent: Optional[str]) -> DeviceClass:
        haystack = (user_agent or "").lower()
        if any(token.lower() in haystack for token in self.mobile_tokens):
            return DeviceClass.mobile
        return DeviceClass.desktop

    def login_redirect(self, path: str, query: str = "") -> str:
        original = f"{path}?{query}" if query else path
        return f"{self.login_path}?next={quote(original, safe='/')}"


@dataclass
class RequestContext:
    path: str
    user_agent: str
    device: DeviceClass
    query: str = ""
    user: Optional[AuthUser] = None
    is_admin: Optional[bool] = None
    decision: Optional[GateDecision] = None


@dataclass(frozen=True)
class GateResult:
    context: RequestContext
    cookies: List[CookieUpdate] = field(default_factory=list)

    @property
    def decision(self) -> GateDecision:
        assert self.context.decision is not None
        return self.context.decision


class RequestGate:

    def __init__(
        self,
        sessions: SessionProvider,
        roles: RoleResolver,
        policy: Optional[GatePolicy] = None,
    ) -> None:
        self.sessions = sessions
        self.roles = roles
        self.policy = policy or GatePolicy()

    def evaluate(
        self,
        path: str,
        user_agent: Optional[str],
        cookies: Mapping[str, str],
        query: str = "",
    ) -> GateResult:
        refreshed = self.sessions.refresh(cookies)
        user = refreshed.user
        context = RequestContext(
            path=path or "/",
            query=query,
            user_agent=user_agent or "",
            device=self.policy.classify_device(user_agent),
            user=user,
            is_admin=self.roles.is_admin(user.id) if user is not None else None,
        )
        context.decision = self.decide(context)

        if context.decision.outcome is not GateOutcome.proceed:
            logger.info(
                "Request gated",
                extra={
                    "path": context.path,
                    "decision": context.decision.outcome.value,
                    "location": context.decision.location,
                    "device": context.device.value,
                    "user_id": user.id if user else None,
                },
            )
        return GateResult(context=context, cookies=list(refreshed.cookies))

    def decide(self, context: RequestContext) -> GateDecision:
        policy = self.policy
        path = context.path

        if policy.is_exempt(path):
            return GateDecision.proceed()

        if policy.is_private(path):
            return GateDecision.block()

        if policy.is_admin_path(path):
            if context.user is None:
                return GateDecision.redirect_to(policy.login_redirect(path, context.query))
            if not context.is_admin:
                return GateDecision.redirect_to(policy.home_path)
            return GateDecision.proceed()

        on_notice = _normalize(path) == policy.desktop_notice_path
        if context.device is DeviceClass.desktop:
            if not on_notice and not policy.is_auth_flow(path):
                return GateDecision.redirect_to(policy.desktop_notice_path)
        elif on_notice:
            return GateDecision.redirect_to(policy.home_path)

        return GateDecision.proceed()


def _normalize(path: str) -> str:
    return path.rstrip("/") or "/"


def _is_under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


@lru_cache
def build_default_gate() -> RequestGate:
    settings = get_settings()
    policy = GatePolicy(mobile_tokens=settings.mobile_user_agent_tokens)
    return RequestGate(
        sessions=build_default_session_provider(),
        roles=BackendRoleResolver(build_default_backend()),
        policy=policy,
    )
