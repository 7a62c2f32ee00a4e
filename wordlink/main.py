import os
import hmac
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings
from .errors import AssociationError, GenerationError, QuotaExceeded, WordLinkError
from .monitoring import configure_logging, monitor
from .path_search import SearchBudgets
from .puzzle_assembler import SeedPolicy
from .rate_limiter import RateLimiter
from .schemas import (
    ApiStatsResponse,
    AssociationsResponse,
    CacheStatsResponse,
    CompletionRequest,
    CompletionResponse,
    GameResponse,
    GenerateRequest,
    GenerateResponse,
    HintResponse,
    SolutionResponse,
)
from .service import WordLinkService

logger = logging.getLogger(__name__)


def _error_status(exc: WordLinkError) -> int:
    if isinstance(exc, QuotaExceeded):
        return 429
    if isinstance(exc, AssociationError):
        return 502
    if isinstance(exc, GenerationError):
        return 503
    return 500


def create_app(service: Optional[WordLinkService] = None) -> FastAPI:
    service = service or WordLinkService(Settings.from_env())
    settings = service.settings
    limiter = RateLimiter(requests_per_hour=settings.ip_rate_limit)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service.startup()
        yield
        await service.shutdown()

    app = FastAPI(title="WordLink Puzzle API", lifespan=lifespan)
    app.state.service = service
    app.state.rate_limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    @app.exception_handler(WordLinkError)
    async def wordlink_error_handler(request: Request, exc: WordLinkError):
        status = _error_status(exc)
        monitor.track_error(type(exc).__name__)
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status, content={"error": type(exc).__name__, "message": str(exc)})

    def require_admin(request: Request, token: Optional[str] = Query(None)) -> None:
        secret = settings.admin_secret
        if not secret:
            return
        header = request.headers.get("Authorization", "")
        ok = (token is not None and hmac.compare_digest(token, secret)) or \
            hmac.compare_digest(header, f"Bearer {secret}")
        if not ok:
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.get("/api/health")
    def health():
        return {"ok": True, "has_puzzle": service.current_puzzle is not None, "cache_size": len(service.cache)}

    api = APIRouter(prefix="/api", dependencies=[Depends(limiter.dependency())])

    @api.get("/game", response_model=GameResponse)
    def get_game():
        view = service.game_view()
        if view is None:
            raise HTTPException(status_code=404, detail="No puzzle available yet")
        return view

    @api.post("/game/complete", response_model=CompletionResponse)
    def complete_game(req: CompletionRequest):
        stats = service.record_completion(req.steps, req.back_steps, req.total_steps)
        if stats is None:
            raise HTTPException(status_code=404, detail="No puzzle available yet")
        return {"message": "Game completed", "stats": stats}

    @api.get("/game/hint", response_model=HintResponse)
    async def get_hint(progress: Optional[List[str]] = Query(None)):
        try:
            hint = await service.get_hint(progress)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if hint is None:
            raise HTTPException(status_code=404, detail="No puzzle available yet")
        return hint

    @api.get("/associations/{word}", response_model=AssociationsResponse)
    async def get_associations(word: str, detailed: bool = False):
        try:
            details = await service.get_associations(word, detailed=True)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        words = [d.word for d in details]
        response = {"word": word.strip().lower(), "associations": words}
        if detailed:
            response["detailed"] = [d.to_dict() for d in details]
        return response

    @api.get("/admin/solution", response_model=SolutionResponse, dependencies=[Depends(require_admin)])
    def get_solution():
        solution = service.admin_solution()
        if solution is None:
            raise HTTPException(status_code=404, detail="No puzzle available yet")
        return solution

    @api.post("/admin/generate-game", response_model=GenerateResponse, dependencies=[Depends(require_admin)])
    async def generate_game(req: Optional[GenerateRequest] = Body(None)):
        req = req or GenerateRequest()
        policy = None
        if req.seed_word:
            policy = SeedPolicy(seed_word=req.seed_word, default_word=settings.default_seed_word)
        defaults = settings.search_budgets()
        try:
            budgets = SearchBudgets(
                min_path_length=req.min_path_length or defaults.min_path_length,
                max_depth=req.max_depth or defaults.max_depth,
                max_expansions=req.max_expansions or defaults.max_expansions,
                diversity_floor=defaults.diversity_floor if req.diversity_floor is None else req.diversity_floor,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        puzzle = await service.generate_puzzle(policy, budgets)
        return {"success": True, "message": "New game generated", "game": puzzle.to_dict()}

    @api.get("/admin/cache-stats", response_model=CacheStatsResponse, dependencies=[Depends(require_admin)])
    def cache_stats():
        return service.cache_stats()

    @api.get("/admin/api-stats", response_model=ApiStatsResponse, dependencies=[Depends(require_admin)])
    def api_stats():
        return service.api_stats()

    app.include_router(api)
    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    configure_logging()
    uvicorn.run(create_app(), host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
