"""Delivery endpoints: choose a method, submit, confirm or cancel."""

from starlette.requests import Request
from starlette.responses import JSONResponse

from kiosk.delivery import DeliveryResult, DeliveryWorkflow
from kiosk.lib.config import ScanStatus
from kiosk.lib.exceptions import DeliveryStateError, InvalidRecipientError
from kiosk.server.validators import (
    DistributionRequest,
    InvalidBody,
    RecipientRequest,
    parse_body,
)


def _workflow(request: Request) -> DeliveryWorkflow:
    return request.app.state.workflow


def _result_response(
    workflow: DeliveryWorkflow, result: DeliveryResult | None
) -> JSONResponse:
    """Report a send outcome, or the confirmation prompt."""
    body = workflow.to_dict()
    if result is None:
        return JSONResponse({**body, "confirmationRequired": True}, status_code=202)
    return JSONResponse(
        {**body, **result.to_dict()},
        status_code=200 if result.delivered else 502,
    )


async def get_delivery(request: Request) -> JSONResponse:
    """Return the workflow state."""
    return JSONResponse(_workflow(request).to_dict())


async def choose_distribution(request: Request) -> JSONResponse:
    """Pick `url` or `image` for the completed scan."""
    try:
        body = await parse_body(request, DistributionRequest)
    except InvalidBody as e:
        return e.response

    job = request.app.state.orchestrator.job
    if job.status != ScanStatus.COMPLETED or not job.file_name:
        return JSONResponse({"error": "No scanned file"}, status_code=409)

    workflow = _workflow(request)
    try:
        workflow.choose_distribution(body.method, job.file_name)
    except DeliveryStateError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return JSONResponse(workflow.to_dict())


async def submit_recipient(request: Request) -> JSONResponse:
    """Submit the recipient; sends now or asks for confirmation."""
    try:
        body = await parse_body(request, RecipientRequest)
    except InvalidBody as e:
        return e.response

    workflow = _workflow(request)
    try:
        result = await workflow.submit(body.email)
    except InvalidRecipientError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except DeliveryStateError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return _result_response(workflow, result)


async def confirm_recipient(request: Request) -> JSONResponse:
    """Confirm an address that is not on the allow-list and send."""
    workflow = _workflow(request)
    try:
        result = await workflow.confirm()
    except DeliveryStateError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return _result_response(workflow, result)


async def cancel_recipient(request: Request) -> JSONResponse:
    """Abort the send awaiting confirmation."""
    workflow = _workflow(request)
    workflow.cancel()
    return JSONResponse(workflow.to_dict())
