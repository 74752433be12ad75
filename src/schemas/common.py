"""Shared schema base classes.

Payloads travel in camelCase on the wire while the Python side keeps
snake_case attribute names.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for request and response bodies."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None


class ErrorResponse(ApiModel):
    success: bool = False
    message: str
