"""Position endpoints — list and check diff positions without touching GitHub."""

from __future__ import annotations

from fastapi import APIRouter

from pinpoint.api.schemas import (
    PositionCheckResponse,
    PositionsRequest,
    PositionsResponse,
    ValidatePositionRequest,
)
from pinpoint.diff.parser import parse_diff_or_patch, parse_file_diff
from pinpoint.diff.validator import check_position

router = APIRouter(prefix="/positions", tags=["Positions"])


@router.post("", response_model=PositionsResponse)
async def list_positions(request: PositionsRequest) -> PositionsResponse:
    """Every commentable position of ``path``, grouped by hunk."""
    return PositionsResponse.from_file_diff(parse_file_diff(request.diff_text, request.path))


@router.post("/validate", response_model=PositionCheckResponse)
async def validate_position(request: ValidatePositionRequest) -> PositionCheckResponse:
    """Check one position; an invalid one is a normal result, not an error."""
    files = parse_diff_or_patch(request.diff_text, request.path)
    return PositionCheckResponse.from_check(check_position(files, request.path, request.position))
