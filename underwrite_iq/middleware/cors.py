# This project was developed with assistance from AI tools.
"""Open CORS for the analyzer endpoints.

The analyzer form is embedded on third-party landing pages, so every origin
is allowed. Preflight requests are answered here without reaching a route.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Endpoints served with GET; everything else is POST-only
GET_PATHS = {"/referral-lookup", "/health"}


def allowed_methods(path: str) -> str:
    return "GET, OPTIONS" if path.rstrip("/") in GET_PATHS else "POST, OPTIONS"


class OpenCORSMiddleware(BaseHTTPMiddleware):
    """Answer preflights and stamp ``Access-Control-Allow-Origin: *``."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            return Response(
                status_code=200,
                headers={
                    "Access-Control-Allow-Origin": "*",
                    "Access-Control-Allow-Methods": allowed_methods(request.url.path),
                    "Access-Control-Allow-Headers": "Content-Type",
                },
            )
        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response
