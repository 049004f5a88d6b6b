"""Serve stored scan artifacts."""

from urllib.parse import quote

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from kiosk.lib.artifacts import ArtifactStore
from kiosk.lib.exceptions import ArtifactAccessError, ArtifactNotFoundError
from kiosk.logging import get_logger

logger = get_logger("server.api.artifacts")


async def get_artifact(request: Request) -> Response:
    """Return an artifact inline with its inferred content type."""
    file_name = request.path_params.get("file", "")
    if not file_name:
        return JSONResponse({"error": "File parameter is missing"}, status_code=400)

    store: ArtifactStore = request.app.state.store
    try:
        data, content_type = store.read(file_name)
    except ArtifactAccessError:
        logger.warning("Rejected artifact path %r", file_name)
        return JSONResponse({"error": "Access denied"}, status_code=403)
    except ArtifactNotFoundError:
        return JSONResponse({"error": "File not found"}, status_code=404)

    return Response(
        data,
        media_type=content_type,
        headers={"Content-Disposition": content_disposition(file_name)},
    )


def content_disposition(file_name: str, disposition: str = "inline") -> str:
    """Build a header value that survives quotes and non-ASCII names."""
    quoted = quote(file_name)
    if quoted != file_name:
        return f"{disposition}; filename*=utf-8''{quoted}"
    return f'{disposition}; filename="{file_name}"'
