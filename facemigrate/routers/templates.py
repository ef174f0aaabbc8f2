"""Template conversion API endpoints."""
from fastapi import APIRouter, Depends, HTTPException

from ..config import Settings, get_settings
from ..exceptions import FaceTemplateMigrationError
from ..schemas import (
    BatchConvertRequest,
    BatchConvertResponse,
    BatchErrorResponse,
    ConvertRequest,
    ErrorDetail,
    TemplateResponse,
    VersionRequest,
    VersionResponse,
)
from ..services.conversion import TemplateConverter

router = APIRouter(prefix="/api/templates", tags=["templates"])


def get_template_converter() -> TemplateConverter:
    """Dependency to get a converter instance."""
    return TemplateConverter()


def _error(e: FaceTemplateMigrationError) -> HTTPException:
    detail = ErrorDetail(code=e.code, message=str(e))
    return HTTPException(status_code=422, detail=detail.model_dump())


@router.post("/convert", response_model=TemplateResponse)
async def convert_template(
    request: ConvertRequest,
    converter: TemplateConverter = Depends(get_template_converter),
):
    """
    Convert one legacy template.
    """
    data = request.template_bytes()
    try:
        if request.version is None:
            template = converter.convert_auto_version(data)
        else:
            template = converter.convert_one(data, request.version)
    except FaceTemplateMigrationError as e:
        raise _error(e)
    return template.to_dict()


@router.post("/convert/batch", response_model=BatchConvertResponse)
async def convert_templates(
    request: BatchConvertRequest,
    converter: TemplateConverter = Depends(get_template_converter),
    settings: Settings = Depends(get_settings),
):
    """
    Convert a batch of legacy templates.

    With a version, templates of another version are skipped; otherwise each
    template is tried as V16 then V24. With fail_fast the first error aborts
    the request.
    """
    if len(request.templates) > settings.max_batch_size:
        raise HTTPException(
            status_code=413,
            detail=f"Batch of {len(request.templates)} exceeds limit of {settings.max_batch_size}",
        )

    try:
        result = converter.convert_batch(
            request.template_bytes(), request.version, fail_fast=request.fail_fast
        )
    except FaceTemplateMigrationError as e:
        raise _error(e)

    return {
        "templates": [t.to_dict() for t in result.templates],
        "dropped": result.dropped,
        "skipped": result.skipped,
        "errors": [
            BatchErrorResponse(index=index, code=e.code, message=str(e))
            for index, e in result.errors
        ],
    }


@router.post("/version", response_model=VersionResponse)
async def template_version(
    request: VersionRequest,
    converter: TemplateConverter = Depends(get_template_converter),
):
    """Read the version byte of a legacy template."""
    try:
        return {"version": converter.version_of(request.template_bytes())}
    except FaceTemplateMigrationError as e:
        raise _error(e)
