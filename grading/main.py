import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, status
from pydantic import BaseModel, Field

from .service import AssessmentVerdict, ComplexityTier, GradingClient, GradingServiceError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Assessment Agent Grading Service",
    description="Compares submissions with base examples using a hosted model",
    version="0.1.0"
)


class QuestionMeta(BaseModel):
    title: str
    description: str = ""
    criteria: Optional[str] = None


class AssessRequest(BaseModel):
    content: str = Field(..., min_length=1)
    base_example_content: str = Field(..., min_length=1)
    question: QuestionMeta
    submission_kind: str
    tier: Optional[ComplexityTier] = None


_client: Optional[GradingClient] = None


def get_grading_client() -> GradingClient:
    global _client
    if _client is None:
        _client = GradingClient()
    return _client


@app.get("/")
async def root():
    return {"message": "Assessment Agent Grading Service"}


@app.get("/health")
async def health_check(deep: bool = False, client: GradingClient = Depends(get_grading_client)):
    """Liveness; with ``deep=true`` also pings the hosted model."""
    if not deep:
        return {"status": "healthy"}
    healthy = await client.health_check()
    return {"status": "healthy" if healthy else "degraded", "model": healthy}


@app.post("/assess", response_model=AssessmentVerdict)
async def assess(request: AssessRequest, client: GradingClient = Depends(get_grading_client)):
    """Grade one submission against its base example."""
    try:
        return await client.assess(
            request.content,
            request.base_example_content,
            request.question.model_dump(),
            request.submission_kind,
            tier=request.tier,
        )
    except GradingServiceError as e:
        logger.error(f"Assessment failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
