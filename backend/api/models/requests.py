"""
Pydantic request models for API endpoints.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmitVideoRequest(ApiModel):
    """Request model for video submission."""
    origin_url: str = Field(..., description="Google Drive sharing URL of the source video")
    instructions: str = Field(..., description="Free-text clip instructions")
    multiple_clips: bool = Field(default=False, description="Allow more than one clip")


class ResetVideoRequest(ApiModel):
    """Request model for video reset."""
    instructions: Optional[str] = Field(default=None, description="New instructions; defaults to the last job's")


class SubtitleSegmentModel(ApiModel):
    """One subtitle segment."""
    index: int = Field(..., ge=0)
    lines: List[str]
    start_time_seconds: float
    end_time_seconds: float


class UpdateSubtitlesRequest(ApiModel):
    """Request model for replacing a clip's subtitle segments."""
    segments: List[SubtitleSegmentModel]
