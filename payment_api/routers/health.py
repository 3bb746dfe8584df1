from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health(request: Request):
    return {
        "success": True,
        "message": "Payment API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": request.app.state.settings.ENVIRONMENT,
    }
