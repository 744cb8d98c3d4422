"""API router package."""

from fastapi import APIRouter

from taskhub.api.v1 import (
    auth,
    boards,
    columns,
    health,
    projects,
    tasks,
    users,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(boards.router, prefix="/boards", tags=["Boards"])
router.include_router(columns.router, prefix="/columns", tags=["Columns"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
