import logging

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from . import database, models
from .config import configure_logging, settings
from .errors import register_error_handlers
from .routers import (
    attempts, auth, categories, classrooms, courses, enrollments, lessons, messages, modules, notifications,
    orders, questions, transactions, users,
)
from .services import categories as category_service
from .services import users as user_service

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# CORS has to be registered before the routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

# --- routes ---
app.include_router(auth.router)
app.include_router(auth.router, prefix=f"{settings.API_V1_PREFIX}/auth")
for module in (users, categories, courses, modules, lessons, questions, attempts, enrollments, orders,
               transactions, classrooms, messages, notifications):
    app.include_router(module.router, prefix=settings.API_V1_PREFIX)


# --- startup: create tables and seed ---
@app.on_event("startup")
def startup_event():
    configure_logging()
    models.Base.metadata.create_all(bind=database.engine)
    if not settings.SEED_DATA:
        return
    db = database.SessionLocal()
    try:
        if user_service.seed_admin(db):
            logger.info("Admin account %s created", settings.ADMIN_USERNAME)
        created = category_service.seed_default_categories(db)
        if created:
            logger.info("Seeded %s default categories", created)
    finally:
        db.close()


@app.get("/", tags=["health"])
def root():
    return {"name": settings.APP_NAME, "status": "ok"}
