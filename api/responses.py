"""
api/responses.py -- Build the standard success/failure JSON envelopes.

Every route returns one of:
  {"success": true,  "data": ..., "message": "..."}
  {"success": false, "error": {"code": "ERROR", "message": "..."}}

Clients branch on `success` and never need the status code to pick a schema.
"""

from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.models import ErrorDetail, ErrorResponse, SuccessResponse


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_dump(item) for item in data]
    return data


def success_response(
    data: Any = None,
    message: str = "Operation successful",
    status_code: int = 200,
    no_store: bool = False,
) -> JSONResponse:
    """Wrap data in the success envelope.

    no_store adds Cache-Control: no-store; use it on any response that carries tokens.
    """
    resp = JSONResponse(
        status_code=status_code,
        content=SuccessResponse(data=_dump(data), message=message).model_dump(mode="json"),
    )
    if no_store:
        resp.headers["Cache-Control"] = "no-store"
    return resp


def error_response(message: str, status_code: int, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    """Wrap message in the failure envelope."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(message=message)).model_dump(),
        headers=headers,
    )
