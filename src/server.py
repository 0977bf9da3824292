"""
FastAPI server for the WanderLink Match Service.

Exposes:
  - GET /health - Health check
  - POST /run-graph - Execute a graph (candidate_discovery, swipe)
  - POST /matches/reconcile - Re-run match reconciliation for a like
  - GET /users/{user_id}/matches - Profiles the user is matched with
  - GET /docs - Interactive API documentation (Swagger UI)
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Request, status, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Dict, Any, Optional, Annotated
import time

# Import configuration (loads .env automatically)
from src.config import config, validate_config

# Import logging setup
from src.utils.logging_config import logger, setup_langsmith, setup_logging

from src.graphs.discovery import create_discovery_graph
from src.graphs.swipe import create_swipe_graph
from src.tools.match_tools import get_matched_profiles, reconcile_match, require_profile
from src.utils.errors import DataUnavailableError, InvalidInputError, NotFoundError

# Setup logging
setup_logging(debug=config.DEBUG)

# ============================================================
# VALIDATE CONFIGURATION AT STARTUP
# ============================================================
try:
    config_status = validate_config()
    logger.info("Configuration validated successfully")
    for key, value in config_status.items():
        logger.info("  %s: %s", key, value)
except ValueError as e:
    logger.error("Configuration error: %s", e)
    exit(1)

# ============================================================
# FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title="WanderLink Match Service",
    description="Swipe deck discovery, swipe recording and mutual-like matching for WanderLink",
    version="1.0.0",
)

# ============================================================
# CORS CONFIGURATION
# ============================================================
# The Next.js app calls this service from its server actions and, in dev,
# directly from the browser.
origins = [
    "http://localhost:3000",  # Next dev
    "http://localhost:9002",  # Next dev (turbopack port)
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

GRAPH_FACTORIES = {
    "candidate_discovery": create_discovery_graph,
    "swipe": create_swipe_graph,
}


# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================
class GraphRequest(BaseModel):
    """
    Request body for /run-graph endpoint.

    Attributes:
        graph (str): Name of graph to execute.
                    Options: 'candidate_discovery', 'swipe'
        input (dict): Input state for the graph.
    """
    graph: str
    input: Dict[str, Any]


class GraphResponse(BaseModel):
    """
    Response body for /run-graph endpoint.

    Attributes:
        success (bool): Whether the graph reported success
        graph (str): Name of the graph that was executed
        data (dict): Output state from the graph
        error (Optional[str]): Error message if something went wrong
    """
    success: bool
    graph: str
    data: Dict[str, Any] = {}
    error: Optional[str] = None


class ReconcileRequest(BaseModel):
    """A like from liker_id on target_id that may complete a match."""
    liker_id: str
    target_id: str


class ReconcileResponse(BaseModel):
    success: bool = True
    matched: bool
    profile: Optional[Dict[str, Any]] = None


class MatchesResponse(BaseModel):
    success: bool = True
    user_id: str
    matches: list[Dict[str, Any]]


# ============================================================
# AUTH
# ============================================================
def require_service_token(
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Check the shared bearer token when SERVICE_TOKEN is configured."""
    if not config.SERVICE_TOKEN:
        return
    if authorization != f"Bearer {config.SERVICE_TOKEN}":
        logger.warning("Unauthorized request: invalid or missing token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


# ============================================================
# MIDDLEWARE
# ============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header showing how long the request took."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# ============================================================
# ROUTES
# ============================================================

@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns:
        dict: {"status": "healthy"}
    """
    return {"status": "healthy"}


@app.post(
    "/run-graph",
    response_model=GraphResponse,
    tags=["Graphs"],
    dependencies=[Depends(require_service_token)],
)
def run_graph(request: GraphRequest) -> GraphResponse:
    """
    Execute a graph and return its final state.

    Supported graphs:
      - candidate_discovery: next page of swipe candidates
        (input: user_id, cursor?, coordinates?, radius_km?, page_size?)
      - swipe: record a swipe and reconcile a match on a like
        (input: swiper_id, target_id, action)

    Graph-level failures (bad input, store unavailable) come back as
    success=False with the error; only unexpected crashes return 500.
    """
    factory = GRAPH_FACTORIES.get(request.graph)
    if factory is None:
        logger.error("Unknown graph: %s", request.graph)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown graph: {request.graph}. "
                   f"Valid options: {', '.join(GRAPH_FACTORIES)}",
        )

    logger.info("Received request for graph: %s", request.graph)
    logger.debug("Input keys: %s", list(request.input.keys()))
    start_time = time.time()

    try:
        result = factory().invoke(request.input)
    except Exception as e:
        execution_time = time.time() - start_time
        logger.error(
            "%s graph failed after %.2fs: %s", request.graph, execution_time, str(e)
        )
        logger.exception("Full traceback:")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Graph execution failed",
        )

    execution_time = time.time() - start_time
    metadata = result.get("response_metadata", {})
    success = bool(metadata.get("success", not result.get("error")))
    logger.info(
        "run-graph summary: graph=%s input_keys=%s success=%s time=%.2fs",
        request.graph,
        list(request.input.keys()),
        success,
        execution_time,
    )
    return GraphResponse(
        success=success,
        graph=request.graph,
        data=result,
        error=result.get("error"),
    )


@app.post(
    "/matches/reconcile",
    response_model=ReconcileResponse,
    tags=["Matches"],
    dependencies=[Depends(require_service_token)],
)
def reconcile(request: ReconcileRequest) -> ReconcileResponse:
    """
    Check whether a recorded like is mutual and create the match once.

    Idempotent: calling again for an existing match returns the same profile.
    """
    profile = reconcile_match(request.liker_id, request.target_id)
    return ReconcileResponse(
        matched=profile is not None,
        profile=profile.to_response() if profile else None,
    )


@app.get(
    "/users/{user_id}/matches",
    response_model=MatchesResponse,
    tags=["Matches"],
    dependencies=[Depends(require_service_token)],
)
def list_matches(user_id: str) -> MatchesResponse:
    """Return the profiles of everyone the user is matched with."""
    require_profile(user_id)
    profiles = get_matched_profiles(user_id)
    return MatchesResponse(
        user_id=user_id,
        matches=[p.to_response() for p in profiles],
    )


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """Information about the API and how to access documentation."""
    return {
        "service": "WanderLink Match Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


# ============================================================
# ERROR HANDLERS
# ============================================================

def _error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "status_code": status_code,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Return HTTPExceptions in the service's uniform error format."""
    logger.error("HTTP Exception: %s - %s", exc.status_code, exc.detail)
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    logger.warning("Invalid input on %s: %s", request.url.path, exc)
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.warning("Not found on %s: %s", request.url.path, exc)
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(DataUnavailableError)
async def data_unavailable_handler(request: Request, exc: DataUnavailableError):
    """Store failures are retryable from the client's point of view."""
    logger.error("Data unavailable on %s: %s", request.url.path, exc)
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE, "Data store unavailable"
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Never returns the exception message to the client; use logging instead.
    """
    logger.error("Unhandled exception: %s", str(exc))
    logger.exception("Full traceback:")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


# ============================================================
# STARTUP EVENTS
# ============================================================

@app.on_event("startup")
async def startup_event():
    """Log effective configuration and enable tracing if requested."""
    logger.info("=" * 60)
    logger.info("WanderLink Match Service starting up")
    logger.info("=" * 60)

    logger.info("Firebase Project: %s", config.FIREBASE_PROJECT_ID)
    logger.info("Debug Mode: %s", config.DEBUG)
    logger.info("Page Size: %s", config.PROFILES_PER_FETCH)
    logger.info(
        "Over-fetch: radius x%s, fallback x%s, not-in cap %s",
        config.RADIUS_OVERFETCH_MULTIPLIER,
        config.FALLBACK_OVERFETCH_MULTIPLIER,
        config.NOT_IN_FILTER_LIMIT,
    )
    logger.info("LangSmith tracing: %s", setup_langsmith())
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("WanderLink Match Service shutting down")


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    """
    Run with: python -m uvicorn src.server:app --reload
    """
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="info" if not config.DEBUG else "debug"
    )
