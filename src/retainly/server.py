import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, Field

from retainly.application.config import resolve_config
from retainly.application.factory import build_review_service, get_store
from retainly.application.scheduling.service import ReviewService
from retainly.consts import VERSION
from retainly.domain.errors import ItemNotFound, MalformedOverride, RetentionOutOfRange
from retainly.domain.scheduling.codec import parameters_to_dict, parse_parameters
from retainly.domain.scheduling.models import DashboardItem, Item, Rating
from retainly.infrastructure.adapters.sqlite_store import SqliteStore

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("retainly.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"retainly server v{VERSION} starting up...")
    yield
    # Shutdown
    store = getattr(app.state, "store", None)
    if isinstance(store, SqliteStore):
        store.close()
    logger.info("retainly server shutting down...")


app = FastAPI(
    title="retainly server",
    description="Spaced-repetition scheduling over HTTP.",
    version=VERSION,
    lifespan=lifespan,
)


async def get_service(request: Request) -> ReviewService:
    """One store and service per process, so per-item review locks are shared."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        config = resolve_config()
        request.app.state.store = get_store(config)
        service = await build_review_service(config, request.app.state.store)
        request.app.state.service = service
    return service


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class ItemResponse(BaseModel):
    id: int
    title: str
    source: str | None = None
    category_id: int | None = None
    urgency: str | None = None
    category: str | None = None


class CreateItemRequest(BaseModel):
    title: str
    source: str | None = None
    category_id: int | None = None
    notes: str | None = None


class ReviewRequest(BaseModel):
    rating: int = Field(ge=1, le=4)
    notes: str | None = None


class RetentionRequest(BaseModel):
    desired_retention: float


class RetentionResponse(BaseModel):
    desired_retention: float


class ReviewResponse(BaseModel):
    review_id: int | None
    item_id: int
    rating: int
    reviewed_at: str
    stability: float
    difficulty: float
    interval: int


start_time = time.time()


def _item_response(item: Item) -> ItemResponse:
    return ItemResponse(
        id=item.id, title=item.title, source=item.source, category_id=item.category_id
    )


def _entry_response(entry: DashboardItem) -> ItemResponse:
    return ItemResponse(
        id=entry.item.id,
        title=entry.item.title,
        source=entry.item.source,
        category_id=entry.item.category_id,
        urgency=entry.urgency.label,
        category=entry.category_name,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/items", response_model=list[ItemResponse])
async def list_items(service: ReviewService = Depends(get_service)):
    """All active items, most urgent first."""
    return [_entry_response(e) for e in await service.dashboard()]


@app.get("/items/due", response_model=list[ItemResponse])
async def list_due_items(service: ReviewService = Depends(get_service)):
    return [_entry_response(e) for e in await service.due_items()]


@app.post("/items", response_model=ItemResponse, status_code=201)
async def create_item(req: CreateItemRequest, request: Request, service=Depends(get_service)):
    store = request.app.state.store
    if req.category_id is not None and await store.get_category(req.category_id) is None:
        raise HTTPException(status_code=404, detail=f"Category {req.category_id} not found")
    item = await store.add_item(
        Item(
            id=None,
            title=req.title,
            source=req.source,
            category_id=req.category_id,
            notes=req.notes,
        )
    )
    return _item_response(item)


@app.get("/items/archived", response_model=list[ItemResponse])
async def list_archived_items(service: ReviewService = Depends(get_service)):
    return [_item_response(item) for item in await service.archived_items()]


@app.post("/items/{item_id}/archive", response_model=ItemResponse)
async def archive_item(item_id: int, service: ReviewService = Depends(get_service)):
    try:
        return _item_response(await service.archive_item(item_id))
    except ItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.post("/items/{item_id}/unarchive", response_model=ItemResponse)
async def unarchive_item(item_id: int, service: ReviewService = Depends(get_service)):
    try:
        return _item_response(await service.unarchive_item(item_id))
    except ItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.delete("/items/{item_id}", status_code=204)
async def delete_item(item_id: int, service: ReviewService = Depends(get_service)):
    """Delete an item together with its review history."""
    try:
        await service.delete_item(item_id)
    except ItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return Response(status_code=204)


@app.post("/items/{item_id}/reviews", response_model=ReviewResponse)
async def submit_review(
    item_id: int, req: ReviewRequest, service: ReviewService = Depends(get_service)
):
    """Record a review and return the new scheduling state."""
    try:
        result = await service.submit_review(item_id, Rating.from_value(req.rating), req.notes)
    except ItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    outcome = result.outcome
    return ReviewResponse(
        review_id=outcome.id,
        item_id=item_id,
        rating=int(outcome.rating),
        reviewed_at=outcome.reviewed_at.isoformat(),
        stability=result.state.stability,
        difficulty=result.state.difficulty,
        interval=result.state.interval,
    )


@app.get("/items/{item_id}/preview")
async def preview_review(item_id: int, service: ReviewService = Depends(get_service)):
    """Interval each rating would give if submitted now."""
    try:
        states = await service.preview(item_id)
    except ItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {rating.name.lower(): state.interval for rating, state in states.items()}


@app.get("/parameters")
async def get_parameters(
    category_id: int | None = None, service: ReviewService = Depends(get_service)
):
    """Effective parameter set and retention for a category (or the global scope)."""
    scope = await service.resolver.resolve(category_id)
    payload = parameters_to_dict(scope.parameters)
    payload["effectiveRetention"] = scope.retention
    return payload


@app.post("/parameters/validate")
async def validate_parameters(payload: dict[str, Any]):
    try:
        parameters = parse_parameters(payload)
    except MalformedOverride as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return parameters_to_dict(parameters)


@app.get("/settings/retention", response_model=RetentionResponse)
async def get_global_retention(service: ReviewService = Depends(get_service)):
    return RetentionResponse(desired_retention=await service.global_retention())


@app.put("/settings/retention", response_model=RetentionResponse)
async def set_global_retention(
    req: RetentionRequest, service: ReviewService = Depends(get_service)
):
    """Change the desired retention for items without a category override."""
    try:
        value = await service.set_global_retention(req.desired_retention)
    except RetentionOutOfRange as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return RetentionResponse(desired_retention=value)
