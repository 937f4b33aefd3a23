from typing import List, Optional

from pydantic import Field, model_validator

from app.schemas.base import CamelModel


class ImagePayload(CamelModel):
    base64: Optional[str] = None
    data_url: Optional[str] = None
    url: Optional[str] = None
    content_type: Optional[str] = None

    @model_validator(mode="after")
    def require_source(self):
        if not (self.base64 or self.data_url or self.url):
            raise ValueError("expected one of base64, dataUrl, or url")
        return self


class PipelineRequest(CamelModel):
    content: Optional[str] = Field(default=None, min_length=3, max_length=50_000)
    img: Optional[ImagePayload] = None

    @model_validator(mode="after")
    def exactly_one_input(self):
        if (self.content is None) == (self.img is None):
            raise ValueError("provide either content or img")
        if self.content is not None and not self.content.strip():
            raise ValueError("content must not be blank")
        return self


class PipelineResponse(CamelModel):
    folder_id: int
    folder_name: str
    planet_id: Optional[int] = None
    image_id: Optional[int] = None
    review_id: Optional[int] = None
    suggested_folder: str
    confidence: float
    reasoning: str
    alternatives: List[str]
    ai_categorization_saved: bool
    signed_url: Optional[str] = None
