"""
Shared Pydantic base for request/response schemas.

The portal's frontend speaks camelCase JSON (fullName, confirmPassword,
emailSent). Python code keeps snake_case attribute names; the alias
generator maps between the two. populate_by_name=True means clients may
also send snake_case keys.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    """Plain acknowledgement: {"success": true, "message": "..."}."""
    success: bool = True
    message: str
