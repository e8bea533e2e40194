"""Starlette middleware that runs the request gate ahead of every route."""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.dependencies import apply_cookies
from services.gate import GateOutcome, build_default_gate


class RequestGateMiddleware(BaseHTTPMiddleware):
    """Refresh the session, then continue, redirect or block the request.

    The resolved user and admin flag are exposed on ``request.state`` so route
    dependencies never have to read session cookies themselves.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        gate = build_default_gate()
        result = await run_in_threadpool(
            gate.evaluate,
            request.url.path,
            request.headers.get("user-agent"),
            dict(request.cookies),
            request.url.query,
        )
        request.state.user = result.context.user
        request.state.is_admin = bool(result.context.is_admin)

        decision = result.decision
        if decision.outcome is GateOutcome.redirect:
            response: Response = RedirectResponse(
                url=decision.location or "/", status_code=307
            )
        elif decision.outcome is GateOutcome.block:
            response = PlainTextResponse("Not Found", status_code=404)
        else:
            response = await call_next(request)

        # Handlers that sign in or out set their own session cookies.
        already_set = {
            header.split("=", 1)[0].strip()
            for header in response.headers.getlist("set-cookie")
        }
        apply_cookies(
            response,
            (cookie for cookie in result.cookies if cookie.name not in already_set),
        )
        return response
