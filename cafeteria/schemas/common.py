from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire format: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ErrorResponse(BaseModel):
    success: bool = Field(False)
    error_code: str
    message: str
    error: str
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": False,
            "error_code": "ALREADY_REDEEMED",
            "message": "Abebe Bikila has already used their lunch allowance today.",
            "error": "Abebe Bikila has already used their lunch allowance today.",
            "details": {"meal_type": "lunch"},
        }
    })

