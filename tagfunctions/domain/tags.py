from __future__ import annotations
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import FunctionResult, RunStatus


class TagType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    DATETIME = "datetime"
    LOCATION = "location"
    BOOLEAN = "boolean"
    IMAGE = "image"
    CDA_IMAGE = "cda-image"


class FunctionConfig(BaseModel):
    """Function attached to a tag, in the editor's camelCase shape."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    # Plain string so unknown kinds reach the dispatcher
    function_type: str
    location_tag_ids: list[str] = Field(default_factory=list)
    start_tag_id: Optional[str] = None
    end_tag_id: Optional[str] = None
    threshold: Optional[float] = None
    center_point_tag_id: Optional[str] = None
    max_temp_tag_id: Optional[str] = None
    min_temp_tag_id: Optional[str] = None
    max_temp: Optional[float] = None
    min_temp: Optional[float] = None
    start_power_tag_id: Optional[str] = None
    end_power_tag_id: Optional[str] = None
    time_tag_id: Optional[str] = None
    decimal_places: Optional[int] = Field(default=None, ge=0, le=10)

    # History only, never read for computation
    last_run_at: Optional[str] = None
    last_status: Optional[RunStatus] = None
    last_message: Optional[str] = None
    last_result: Optional[Union[float, str]] = None

    @field_validator("location_tag_ids", mode="before")
    @classmethod
    def _null_locations(cls, v: Any) -> Any:
        return [] if v is None else v

    def with_run(self, result: FunctionResult, ran_at: str) -> FunctionConfig:
        return self.model_copy(
            update={
                "last_run_at": ran_at,
                "last_status": result.status,
                "last_message": result.detail or result.message,
                "last_result": result.value if result.value is not None else "",
            }
        )


class Tag(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    name: str = ""
    description: Optional[str] = None
    type: TagType = TagType.TEXT
    value: Any = None
    function_config: Optional[FunctionConfig] = Field(default=None, alias="functionConfig")

    def dump(self) -> dict[str, Any]:
        # Only what was supplied or assigned, so a saved roster keeps its shape
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")
