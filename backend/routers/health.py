from fastapi import APIRouter

from database import utcnow

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint to verify the API is running."""
    return {"status": "OK", "timestamp": utcnow().isoformat() + "Z"}
