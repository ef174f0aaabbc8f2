"""Pydantic schemas for request/response validation."""
import base64
import binascii
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

from .models import VersionTag


def _decode_template(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"template must be base64: {e}") from e


# ============ Request Schemas ============

class ConvertRequest(BaseModel):
    """Request body for converting one legacy template."""
    template: str = Field(..., description="Base64 of the legacy template blob")
    version: Optional[VersionTag] = Field(
        default=None, description="Expected version; omitted means try V16 then V24"
    )

    @field_validator("template")
    @classmethod
    def template_is_base64(cls, v: str) -> str:
        _decode_template(v)
        return v

    def template_bytes(self) -> bytes:
        return _decode_template(self.template)


class BatchConvertRequest(BaseModel):
    """Request body for converting many legacy templates."""
    templates: List[str]
    version: Optional[VersionTag] = None
    fail_fast: bool = False

    @field_validator("templates")
    @classmethod
    def templates_are_base64(cls, v: List[str]) -> List[str]:
        for item in v:
            _decode_template(item)
        return v

    def template_bytes(self) -> List[bytes]:
        return [_decode_template(item) for item in self.templates]


class VersionRequest(BaseModel):
    """Request body for reading the embedded version."""
    template: str

    @field_validator("template")
    @classmethod
    def template_is_base64(cls, v: str) -> str:
        _decode_template(v)
        return v

    def template_bytes(self) -> bytes:
        return _decode_template(self.template)


# ============ Response Schemas ============

class TemplateResponse(BaseModel):
    """Converted, normalized template."""
    version: int
    data: List[float]


class BatchErrorResponse(BaseModel):
    """Failure of one item in a batch."""
    index: int
    code: str
    message: str


class BatchConvertResponse(BaseModel):
    """Response after converting a batch."""
    templates: List[TemplateResponse]
    dropped: int = 0
    skipped: List[int] = []
    errors: List[BatchErrorResponse] = []


class VersionResponse(BaseModel):
    """Embedded version byte of a template."""
    version: int


class ErrorDetail(BaseModel):
    """Error body returned for conversion failures."""
    code: str
    message: str
