"""CORS middleware with public, embeddable paths.

The app's CORS policy admits only the configured frontend origins. Public
paths (the leaderboard) are embedded by third-party pages, so requests to
them bypass that policy and the route sets its own open CORS headers,
preflight included.
"""

from collections.abc import Iterable

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send


class PublicPathCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that passes requests for ``public_paths`` straight through."""

    def __init__(self, app: ASGIApp, public_paths: Iterable[str] = (), **kwargs) -> None:
        super().__init__(app, **kwargs)
        self.public_paths = frozenset(path.rstrip("/") for path in public_paths)

    def is_public(self, scope: Scope) -> bool:
        return scope["type"] == "http" and scope["path"].rstrip("/") in self.public_paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self.is_public(scope):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)
