"""Grading Service package.

Wraps the hosted model that compares a submission with its base example.
Loads environment variables from a local .env file to support local
development and testing without external configuration.
"""

from pathlib import Path

from dotenv import load_dotenv


def _load_local_env():
    # Try grading/.env first, then project root .env
    pkg_dir = Path(__file__).resolve().parent
    candidates = [
        pkg_dir / ".env",
        pkg_dir.parent / ".env",
    ]
    for p in candidates:
        if p.exists():
            load_dotenv(dotenv_path=p, override=False)


_load_local_env()

from .service import (  # noqa: E402
    AssessmentVerdict,
    ComplexityTier,
    GradingClient,
    GradingServiceError,
    determine_complexity,
)

__all__ = [
    "AssessmentVerdict",
    "ComplexityTier",
    "GradingClient",
    "GradingServiceError",
    "determine_complexity",
]
