import logging
import os
import sys
import time
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

import click
import uvicorn
from alembic import command
from alembic.config import Config
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings, get_settings, settings
from app.core.database import Base, SessionLocal, engine
from app.core.decorator import AppException
from app.core.init import initialize_application, seed_catalog
from app.core.limiter import custom_rate_limit_exceeded_handler, limiter
from app.core.security import jwt_manager
from app.models import *
from app.routers import routes

# ============================================================================
# Directory Setup
# ============================================================================
BASE_DIR = Path(__file__).parent
LOGS_DIR = BASE_DIR / Path(settings.log_file).parent

LOGS_DIR.mkdir(parents=True, exist_ok=True)
os.chmod(LOGS_DIR, 0o755)


# ============================================================================
# Logging Configuration
# ============================================================================
def setup_logging():
    """Configure logging for the application."""
    log_level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    log_format = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] %(message)s"

    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(
            BASE_DIR / settings.log_file,
            mode="a",
            encoding="utf-8",
        ),
    ]

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers,
        force=True,
    )

    # Suppress verbose third-party logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = setup_logging()


# ============================================================================
# Application Lifespan
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, register admins and report which features are live."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    try:
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            initialize_application(db)
        finally:
            db.close()
    except Exception as e:
        logger.error(f"✗ Startup failed: {e}", exc_info=True)
        raise

    features = settings.public_config()["features"]
    enabled = ", ".join(name for name, on in features.items() if on) or "none"
    logger.info(f"✓ Ready; enabled features: {enabled}")
    if not settings.paypal_enabled:
        logger.warning("⚠️  PAYPAL_CLIENT_ID is empty; checkout will answer 503")
    if not settings.emailjs_configured:
        logger.warning("⚠️  EmailJS is not configured; emails will be skipped")

    yield

    logger.info(f"{settings.app_name} stopped")


# ============================================================================
# FastAPI Application
# ============================================================================
app = FastAPI(
    title=settings.app_name,
    description=settings.app_description,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    debug=settings.debug,
    lifespan=lifespan,
)

# ============================================================================
# Middleware Configuration
# ============================================================================
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = f"{process_time:.4f}"
    return response


# Request ID middleware for tracing
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Exception Handlers
# ============================================================================
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_type}: {exc.message}")
    else:
        logger.info(f"{exc.error_type} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "type": exc.error_type},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail, "type": "http_error"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Validation error",
            "type": "validation_error",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"SQLAlchemy error: {type(exc).__name__}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Database error occurred",
            "type": "database_error",
        },
    )


app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)


# ============================================================================
# Health Check & Config Endpoints
# ============================================================================
@app.get("/")
async def root():
    return {
        "app_name": settings.app_name,
        "version": settings.app_version,
        "company": settings.company_name,
        "docs": "/docs" if settings.debug else None,
    }


@app.get("/health")
@limiter.limit("10/minute")
async def health_check(request: Request):
    """Database reachability plus the state of the external integrations."""
    db_status = "healthy"
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check could not reach the database: {e}")
        db_status = "unhealthy"
    finally:
        db.close()

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "timestamp": time.time(),
        "environment": "production" if settings.production else "development",
        "database": db_status,
        "paypal": "configured" if settings.paypal_enabled else "disabled",
        "emailjs": "configured" if settings.emailjs_configured else "disabled",
    }


@app.get("/config")
async def public_config(app_settings: Settings = Depends(get_settings)):
    """Feature flags and public PayPal/company details for the frontend."""
    return app_settings.public_config()


for router in routes:
    app.include_router(router)

logger.info(f"✓ Registered {len(routes)} routers")


# ============================================================================
# CLI Commands
# ============================================================================
@click.group()
def cli():
    """Course marketplace management CLI."""
    pass


def run_migrations():
    try:
        alembic_cfg = Config(str(BASE_DIR / "alembic.ini"))
        command.upgrade(alembic_cfg, "head")
        click.echo("Migrations completed successfully")
    except Exception as e:
        logger.error(f"Migration failed: {e}")
        raise click.ClickException(f"Migration failed: {e}")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True)
@click.option("--reload", is_flag=True, help="Restart on code changes")
def dev(host: str, port: int, reload: bool):
    """Serve the API with a single Uvicorn process."""
    logger.info(f"Development server on http://{host}:{port} (reload={reload})")
    uvicorn.run("main:app", host=host, port=port, reload=reload, log_level="debug")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True)
@click.option("--workers", default=4, show_default=True, help="Gunicorn worker processes")
@click.option("--timeout", default=120, show_default=True, help="Worker timeout in seconds")
@click.option("--skip-migrations", is_flag=True, help="Start without running alembic")
def prod(host: str, port: int, workers: int, timeout: int, skip_migrations: bool):
    """Migrate the database, then serve with Gunicorn + Uvicorn workers."""
    import subprocess

    if not skip_migrations:
        run_migrations()

    cmd = [
        "gunicorn",
        "main:app",
        "--worker-class=uvicorn.workers.UvicornWorker",
        f"--workers={workers}",
        f"--bind={host}:{port}",
        f"--timeout={timeout}",
        "--graceful-timeout=30",
        "--access-logfile=-",
        "--error-logfile=-",
    ]
    logger.info(f"Production server on {host}:{port} with {workers} workers")

    try:
        subprocess.run(cmd, check=True)
    except FileNotFoundError:
        raise click.ClickException("gunicorn is not installed")
    except subprocess.CalledProcessError as e:
        logger.error(f"Gunicorn exited with status {e.returncode}")
        raise click.ClickException(str(e))


@cli.command()
def migrate():
    """Apply database migrations."""
    run_migrations()


@cli.command("seed-catalog")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def seed_catalog_command(path: str):
    """Load courses and batches from a JSON file."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        stats = seed_catalog(db, path)
    finally:
        db.close()
    click.echo(
        f"Courses created: {stats['courses_created']}, "
        f"batches created: {stats['batches_created']}, "
        f"skipped: {stats['skipped']}"
    )


@cli.command("issue-token")
@click.option("--user-id", required=True, help="Identity provider user id")
@click.option("--email", default=None, help="Email claim")
@click.option("--name", default=None, help="Display name claim")
@click.option("--days", default=None, type=int, help="Override token lifetime")
def issue_token(user_id: str, email: str, name: str, days: int):
    """Issue a signed access token, for local testing."""
    expiration = timedelta(days=days) if days else None
    click.echo(
        jwt_manager.create_access_token(
            user_id, email=email, name=name, custom_expiration=expiration
        )
    )


@cli.command()
def info():
    """Display application information."""
    features = settings.public_config()["features"]
    click.echo(f"Application: {settings.app_name}")
    click.echo(f"Version: {settings.app_version}")
    click.echo(f"Debug Mode: {settings.debug}")
    click.echo(f"Database: {settings.db_connection}://{settings.db_host}/{settings.db_database}")
    click.echo(f"Logs Directory: {LOGS_DIR.absolute()}")
    for name, enabled in features.items():
        click.echo(f"Feature {name}: {'on' if enabled else 'off'}")


if __name__ == "__main__":
    cli()
