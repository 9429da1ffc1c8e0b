from fastapi import APIRouter

router = APIRouter()

@router.get("/")
def root():
    return {
        "name": "Performance Track",
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
    }
