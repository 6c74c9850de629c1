# app/schemas/common.py
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class ApiModel(BaseModel):
    """
    Base for request/response bodies.

    Python code uses snake_case; JSON on the wire is camelCase.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(ApiModel, Generic[DataT]):
    """
    Success envelope: {"success": true, "data": ..., "message": ...}

    Errors use {"success": false, "error": {...}} (see app.core.errors).
    """

    success: bool = True
    data: DataT
    message: str | None = None
