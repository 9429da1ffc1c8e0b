from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.audit import router as audit_router
from app.api.cycles import router as cycles_router
from app.api.feedback import router as feedback_router
from app.api.goals import router as goals_router
from app.api.health import router as health_router
from app.api.me import router as me_router
from app.api.notifications import router as notifications_router
from app.api.reviews import router as reviews_router
from app.api.root import router as root_router
from app.api.stats import router as stats_router
from app.api.users import router as users_router
from app.core.config import settings
from app.core.errors import WorkflowError, workflow_error_handler
from app.core.logging import RequestIdMiddleware, setup_logging

setup_logging()

app = FastAPI(title="Performance Track")

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag", "X-Request-ID"],
)

app.add_exception_handler(WorkflowError, workflow_error_handler)

app.include_router(root_router)
app.include_router(health_router)
app.include_router(me_router)
app.include_router(users_router)
app.include_router(cycles_router)
app.include_router(goals_router)
app.include_router(reviews_router)
app.include_router(notifications_router)
app.include_router(feedback_router)
app.include_router(audit_router)
app.include_router(stats_router)
