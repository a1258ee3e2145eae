"""
API v1 routes.
"""

from fastapi import APIRouter

from lyceum.api.v1 import auth, entities, lectures, reflections, relationships, student

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(lectures.router, prefix="/lectures", tags=["Lectures"])
router.include_router(student.router, prefix="/student", tags=["Student"])
router.include_router(reflections.router, prefix="/reflections", tags=["Reflections"])
router.include_router(entities.router, prefix="/philosophical-entities", tags=["Philosophical Entities"])
router.include_router(
    relationships.router,
    prefix="/philosophical-relationships",
    tags=["Philosophical Relationships"],
)
