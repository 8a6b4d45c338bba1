from fastapi import APIRouter

from .endpoints import exam_security

api_router = APIRouter()

api_router.include_router(exam_security.router, prefix="/exam-security", tags=["exam-security"])


@api_router.get("/health")
async def health_check():
    return {"status": "ok", "message": "API is healthy"}
