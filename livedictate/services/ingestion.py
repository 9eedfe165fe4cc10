"""Transport-agnostic request handlers for live sessions.

Each handler authenticates the caller, delegates to the coordinator and
turns the outcome into an ``ApiResponse``. An HTTP server only has to map
routes onto these methods.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from ..errors import (
    BadRequestError,
    ConflictError,
    LiveDictateError,
    NotFoundError,
    UnauthorizedError,
)
from ..models.dictionary import User
from .coordinator import SessionCoordinator

logger = logging.getLogger(__name__)

RequireUser = Callable[[Optional[str]], Awaitable[User]]

CLIENT_ERRORS = (UnauthorizedError, BadRequestError, NotFoundError, ConflictError)


@dataclass
class ApiResponse:
    """Status code plus JSON body."""
    status: int
    body: Dict[str, Any] = field(default_factory=dict)


class TokenAuthenticator:
    """Resolves bearer tokens against a fixed token table."""

    def __init__(self, tokens: Dict[str, User]):
        self.tokens = dict(tokens)

    async def __call__(self, token: Optional[str]) -> User:
        user = self.tokens.get(token) if token else None
        if user is None:
            raise UnauthorizedError()
        return user


class IngestionHandlers:
    """Start, chunk, complete, cancel and read endpoints of the live API."""

    def __init__(self, coordinator: SessionCoordinator, require_user: RequireUser):
        self.coordinator = coordinator
        self.require_user = require_user

    async def start(self, token: Optional[str], body: Optional[Dict[str, Any]] = None) -> ApiResponse:
        body = body or {}

        async def handle() -> ApiResponse:
            user = await self.require_user(token)
            started = await self.coordinator.start(
                user.id,
                title=body.get("title") or None,
                prompt_context=body.get("promptContext") or None,
            )
            return ApiResponse(201, {"sessionId": started.session_id, "model": started.model_identifier})

        return await self._respond("start", handle)

    async def post_chunk(self, token: Optional[str], session_id: str,
                         body: Optional[Dict[str, Any]]) -> ApiResponse:
        async def handle() -> ApiResponse:
            user = await self.require_user(token)
            payload = body if isinstance(body, dict) else {}
            data = payload.get("data")
            if not isinstance(data, str) or not data:
                raise BadRequestError("Missing audio data")

            duration_ms = payload.get("durationMs")
            if isinstance(duration_ms, bool) or not isinstance(duration_ms, (int, float)):
                duration_ms = 0
            await self.coordinator.ingest(
                session_id,
                user.id,
                data,
                duration_ms=max(0, int(duration_ms)),
                is_last_chunk=payload.get("isLast") is True,
            )
            return ApiResponse(200, {"success": True})

        return await self._respond("post_chunk", handle)

    async def complete(self, token: Optional[str], session_id: str) -> ApiResponse:
        async def handle() -> ApiResponse:
            user = await self.require_user(token)
            await self.coordinator.finalize(session_id, user.id)
            return ApiResponse(200, {"success": True})

        return await self._respond("complete", handle)

    async def cancel(self, token: Optional[str], session_id: str) -> ApiResponse:
        async def handle() -> ApiResponse:
            user = await self.require_user(token)
            await self.coordinator.cancel(session_id, user.id)
            return ApiResponse(200, {"success": True})

        return await self._respond("cancel", handle)

    async def get_session(self, token: Optional[str], session_id: str) -> ApiResponse:
        async def handle() -> ApiResponse:
            user = await self.require_user(token)
            view = await self.coordinator.get_session(session_id, user.id)
            return ApiResponse(200, {"session": view.to_dict()})

        return await self._respond("get_session", handle)

    async def list_sessions(self, token: Optional[str], limit: Any = 20) -> ApiResponse:
        async def handle() -> ApiResponse:
            user = await self.require_user(token)
            try:
                parsed_limit = int(limit)
            except (TypeError, ValueError):
                raise BadRequestError(f"Invalid limit: {limit!r}")
            records = await self.coordinator.list_sessions(user.id, parsed_limit)
            return ApiResponse(200, {"sessions": [record.to_dict() for record in records]})

        return await self._respond("list_sessions", handle)

    async def _respond(self, operation: str, handle: Callable[[], Awaitable[ApiResponse]]) -> ApiResponse:
        try:
            return await handle()
        except CLIENT_ERRORS as e:
            logger.info(f"{operation} rejected with {e.status_code}: {e}")
            return ApiResponse(e.status_code, {"error": str(e), "code": e.error_code})
        except LiveDictateError as e:
            logger.error(f"{operation} failed ({e.error_code}): {e}", exc_info=True)
            return ApiResponse(500, {"error": "Internal Server Error"})
        except Exception:
            logger.exception(f"Unexpected error in {operation}")
            return ApiResponse(500, {"error": "Internal Server Error"})
