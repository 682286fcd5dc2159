"""JIT router -- compile, convert, execute and analyze code."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from jitphone.models.records import AnalyzeRequest, CompileRequest, ConvertRequest, ExecuteRequest
from jitphone.service import TransformationService

from web.backend.app.models.api import (
    AnalyzeRequestBody,
    AnalyzeResponseBody,
    CompileRequestBody,
    CompileResponseBody,
    ConvertRequestBody,
    ConvertResponseBody,
    ErrorResponse,
    ExecuteRequestBody,
    ExecuteResponseBody,
    FormatsResponse,
    ProfileResponse,
    StatsResponse,
)

router = APIRouter(prefix="/jit", tags=["jit"])

# Error bodies documented on the endpoints that take source text
_ERRORS = {
    400: {"model": ErrorResponse, "description": "Unsupported dialect or instruction format"},
    404: {"model": ErrorResponse, "description": "Unknown target profile"},
    413: {"model": ErrorResponse, "description": "Input larger than max_input_size"},
}

_service: TransformationService | None = None


def get_service() -> TransformationService:
    """Process-wide service; tests swap it through ``app.dependency_overrides``."""
    global _service
    if _service is None:
        _service = TransformationService()
    return _service


@router.post("/compile", response_model=CompileResponseBody, responses=_ERRORS, summary="Compile source to adapted code")
def compile_source(body: CompileRequestBody, service: TransformationService = Depends(get_service)):
    """Parse, generate, optimize and adapt ``source`` for ``target_profile``.

    Identical requests are answered from the compile cache;
    ``metadata.cache_hit`` says which happened.
    """
    response = service.compile(CompileRequest(**body.model_dump()))
    return response.to_dict()


@router.post("/convert", response_model=ConvertResponseBody, responses=_ERRORS, summary="Convert engine instructions")
def convert_instructions(body: ConvertRequestBody, service: TransformationService = Depends(get_service)):
    return service.convert(ConvertRequest(**body.model_dump())).to_dict()


@router.post("/execute", response_model=ExecuteResponseBody, responses={413: _ERRORS[413]}, summary="Run code in the sandbox")
def execute_code(body: ExecuteRequestBody, service: TransformationService = Depends(get_service)):
    """Run ``code`` in a fresh isolate.

    Failures inside the sandbox (exceptions, timeouts) come back with
    ``success: false`` and HTTP 200.
    """
    return service.execute(ExecuteRequest(**body.model_dump())).to_dict()


@router.post("/analyze", response_model=AnalyzeResponseBody, responses=_ERRORS, summary="Static analysis report")
def analyze_code(body: AnalyzeRequestBody, service: TransformationService = Depends(get_service)):
    return service.analyze(AnalyzeRequest(**body.model_dump())).to_dict()


@router.get("/formats", response_model=FormatsResponse, summary="Accepted dialects and instruction formats")
async def list_formats(service: TransformationService = Depends(get_service)):
    return service.formats_info()


@router.get("/profiles", response_model=list[ProfileResponse], summary="Target profiles")
async def list_profiles(service: TransformationService = Depends(get_service)):
    return service.profiles_info()


@router.get("/stats", response_model=StatsResponse, summary="Cache statistics and settings")
async def stats(service: TransformationService = Depends(get_service)):
    return service.stats()


@router.delete("/cache", summary="Clear all caches")
async def clear_cache(service: TransformationService = Depends(get_service)):
    service.clear_caches()
    return {"cleared": True}
