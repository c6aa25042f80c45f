"""Route handlers for the Web API."""

from learnpath.web.routes.health import router as health_router
from learnpath.web.routes.users import router as users_router
from learnpath.web.routes.tests import router as tests_router
from learnpath.web.routes.learning import router as learning_router
from learnpath.web.routes.dashboard import router as dashboard_router
from learnpath.web.routes.teacher import router as teacher_router

__all__ = [
    "health_router",
    "users_router",
    "tests_router",
    "learning_router",
    "dashboard_router",
    "teacher_router",
]
