"""
Success envelope models.

Routes declare `response_model=APIResponse[Schema]` together with
`response_model_exclude_unset=True`, so `message` or `data` only appear
when the handler sets them.
"""
from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard response body: {"success": true, "data"?: ..., "message"?: ...}."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


def ok(data=None, message: Optional[str] = None) -> dict:
    """Build a success body; keys are only present when given."""
    body: dict = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body
