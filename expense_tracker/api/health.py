from fastapi import APIRouter
from expense_tracker.schemas.health import HealthResponse

router = APIRouter(tags=["health"])

@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()
