"""
ASGI middleware applying credential gate decisions to HTTP requests.
"""

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from shared.errors import AuthenticationError, AuthorizationError
from shared.logging import clear_context, get_logger, set_request_id
from .domain.credential_gate import CredentialGate
from .domain.decision import GateOutcome


class StaticTokenMiddleware:
    """Runs every HTTP request through a :class:`CredentialGate`.

    Authenticated requests get ``request.state.remote_user`` and, for the
    exchange policy, a rewritten ``Authorization`` header. Rejected requests
    are answered here and never reach the app.
    """

    def __init__(self, app: ASGIApp, gate: CredentialGate):
        self.app = app
        self.gate = gate
        self.logger = get_logger("token_gate.middleware")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        set_request_id(headers.get("x-request-id"))
        try:
            decision = await self.gate.evaluate(headers.get("authorization"), scope["method"])

            if decision.remote_user is not None:
                scope.setdefault("state", {})["remote_user"] = decision.remote_user

            if decision.rejected:
                if decision.outcome == GateOutcome.FORBIDDEN:
                    error = AuthorizationError(decision.reason)
                else:
                    error = AuthenticationError(decision.reason)
                self.logger.info(
                    "Request rejected by static token gate",
                    method=scope["method"],
                    path=scope["path"],
                    status_code=decision.status_code,
                    reason=decision.reason,
                )
                response = JSONResponse(
                    status_code=decision.status_code,
                    content=error.to_response().model_dump(),
                )
                await response(scope, receive, send)
                return

            if decision.authorization is not None:
                MutableHeaders(scope=scope)["authorization"] = decision.authorization

            await self.app(scope, receive, send)
        finally:
            clear_context()
