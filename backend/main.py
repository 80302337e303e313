from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
import sys

from database import engine, Base, SessionLocal
import models
from errors import DomainError, StorageError
from auth.routes import router as auth_router
from routes.users import router as users_router
from routes.tasks import router as tasks_router
from routes.collaborative_tasks import router as collaborative_tasks_router
from routes.projects import router as projects_router
from routes.reports import router as reports_router

# Configure logging
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
    if origin.strip()
]

app = FastAPI(
    title="Task Manager API",
    description="Role-based tracking of tasks, collaborative tasks and projects",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(tasks_router)
app.include_router(collaborative_tasks_router)
app.include_router(projects_router)
app.include_router(reports_router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Map service-layer errors to their HTTP status and a JSON body."""
    if isinstance(exc, StorageError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.error_code}): {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_code": exc.error_code},
    )


# ============== Startup: Schema and Admin User ==============

@app.on_event("startup")
async def ensure_admin_user():
    """
    Create missing tables and make sure an admin account exists.

    Uses ADMIN_USERNAME / ADMIN_PASSWORD if set, otherwise admin / admin123
    for local development. Production-like environments refuse to start with
    the default or a short password.
    """
    from auth.security import hash_password, is_production_like

    Base.metadata.create_all(bind=engine)

    admin_username = os.getenv("ADMIN_USERNAME", "admin")
    admin_password = os.getenv("ADMIN_PASSWORD", "admin123")

    if is_production_like():
        if not admin_password.strip() or admin_password == "admin123":
            logger.error("STARTUP FAILED: a non-default ADMIN_PASSWORD is required in production/staging")
            sys.exit(1)
        if len(admin_password.strip()) < 8:
            logger.error("STARTUP FAILED: ADMIN_PASSWORD must be at least 8 characters long")
            sys.exit(1)

    db = SessionLocal()
    try:
        admin = db.query(models.User).filter(models.User.username == admin_username).first()
        if admin:
            logger.info(f"Admin user already exists (username: {admin_username})")
            return

        admin = models.User(
            username=admin_username,
            password_hash=hash_password(admin_password),
            role=models.UserRole.admin,
            department="administration",
        )
        db.add(admin)
        db.commit()

        if admin_password == "admin123":
            logger.warning(f"Admin user '{admin_username}' created with the default password")
        else:
            logger.info(f"Admin user '{admin_username}' created")
    except Exception as e:
        logger.error(f"Failed to ensure admin user exists: {e}")
        db.rollback()
        # Don't fail startup - let the app run even if admin creation fails
    finally:
        db.close()


@app.get("/health")
def health_check():
    return {"status": "healthy"}
