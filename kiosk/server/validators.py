"""Request body models shared by the kiosk API handlers."""

from typing import Any

from pydantic import BaseModel, Field, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from kiosk.lib.config import DistributionMethod


class CommandRequest(BaseModel):
    """Command relayed to every hub peer."""

    command: str = Field(min_length=1, max_length=256)


class DistributionRequest(BaseModel):
    """Distribution method chosen for the current scan."""

    method: DistributionMethod


class RecipientRequest(BaseModel):
    """Recipient address entered by the operator."""

    email: str = Field(min_length=3, max_length=254)


class InvalidBody(Exception):
    """Raised when a request body is missing or invalid."""

    def __init__(self, response: JSONResponse) -> None:
        super().__init__("Invalid request body")
        self.response = response


async def parse_body[M: BaseModel](request: Request, model: type[M]) -> M:
    """Read and validate a JSON request body.

    Raises:
        InvalidBody: Carrying the 400 response to return.
    """
    try:
        raw_data: Any = await request.json()
    except (ValueError, RecursionError):
        raise InvalidBody(
            JSONResponse({"error": "Invalid JSON"}, status_code=400)
        ) from None

    try:
        return model.model_validate(raw_data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidBody(
            JSONResponse({"errors": errors}, status_code=400)
        ) from None
