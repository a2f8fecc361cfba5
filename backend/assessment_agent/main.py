import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .auth.router import router as auth_router
from .config import CORS_ORIGINS
from .courses.router import router as courses_router
from .database import check_database_connection, get_db
from .dispatch import BackgroundGradingQueue, GradingDispatcher
from .questions.router import base_example_router, router as questions_router
from .results.router import router as results_router
from .submissions.router import router as submissions_router
from .users.router import router as users_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check the database, then run the grading queue for the app's lifetime."""
    logger.info("Starting up Assessment Agent API...")
    # Strict DB connectivity check in production; only skip during pytest
    if os.getenv("PYTEST_CURRENT_TEST") is not None:
        logger.info("Skipping DB connectivity check during tests")
    elif check_database_connection():
        logger.info("Database connection successful")
    else:
        logger.error("Database connection failed")
        raise RuntimeError("Cannot connect to database")

    if getattr(app.state, "grading_queue", None) is None:
        app.state.grading_queue = BackgroundGradingQueue(GradingDispatcher())
    queue = app.state.grading_queue
    if isinstance(queue, BackgroundGradingQueue):
        # Nothing can be grading before the worker starts; rows left in processing were cut off by a crash
        queue.dispatcher.fail_interrupted()
        queue.start()
    yield
    logger.info("Shutting down Assessment Agent API...")
    if isinstance(queue, BackgroundGradingQueue):
        queue.shutdown()


app = FastAPI(
    title="Assessment Agent API",
    description="Courses, submissions and AI-assisted grading against base examples",
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(courses_router)
app.include_router(questions_router)
app.include_router(base_example_router)
app.include_router(submissions_router)
app.include_router(results_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Assessment Agent API", "version": VERSION}


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint with database connectivity test."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e),
            "version": VERSION
        }
    return {
        "status": "healthy",
        "database": "connected",
        "version": VERSION
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
