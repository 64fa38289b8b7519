"""HTTP routes for scripture reference extraction.

- POST /scripture/extract -> canonical references found in a text
- POST /scripture/strip   -> the text with markup and entities removed
"""

import logging

from fastapi import APIRouter

from core.scripture.reference_extractor import extract_references, strip_markup
from ..models.api_models import (
    ExtractReferencesRequest,
    ExtractReferencesResponse,
    StripMarkupRequest,
    StripMarkupResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/extract", response_model=ExtractReferencesResponse)
def extract(request: ExtractReferencesRequest) -> ExtractReferencesResponse:
    references = extract_references(request.text, strict=request.strict)
    logger.debug("[API] extracted %d references (strict=%s)", len(references), request.strict)
    return ExtractReferencesResponse(references=references)


@router.post("/strip", response_model=StripMarkupResponse)
def strip(request: StripMarkupRequest) -> StripMarkupResponse:
    return StripMarkupResponse(text=strip_markup(request.text))
