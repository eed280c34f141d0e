"""HTTP boundary for the complaint workflow.

Each endpoint calls exactly one service operation. Library errors are mapped
to status codes by a single exception handler; the body always carries the
error ``kind`` and a human-readable ``detail``.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from complaint_workflow import views
from complaint_workflow.config import Settings, get_settings
from complaint_workflow.lifecycle import WorkItem
from complaint_workflow.models import (
    ActorBusyError,
    ComplaintWorkflowError,
    NotFoundError,
    StorageError,
    now_ms,
)
from complaint_workflow.service import WorkflowService
from complaint_workflow.status import ALLOWED_TRANSITIONS, Status
from complaint_workflow.storage import JsonFileItemStore

logger = logging.getLogger("complaint_workflow.api")

_STATUS_CODES: Dict[type, int] = {
    NotFoundError: 404,
    ActorBusyError: 409,
    StorageError: 500,
}


def error_status_code(exc: ComplaintWorkflowError) -> int:
    """Map a library error to its HTTP status; rejections default to 400."""
    for exc_type, code in _STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return 400


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class CreateItemRequest(_Body):
    id: Optional[str] = Field(None, min_length=1)
    title: str = "Untitled"
    received_date: Optional[int] = Field(None, ge=0, alias="receivedDate")
    logged_date: Optional[int] = Field(None, ge=0, alias="loggedDate")


class UpdateDetailsRequest(_Body):
    title: Optional[str] = None
    received_date: Optional[int] = Field(None, ge=0, alias="receivedDate")
    logged_date: Optional[int] = Field(None, ge=0, alias="loggedDate")


class AllocateRequest(_Body):
    handler: str


class PickUpRequest(_Body):
    actor: Optional[str] = None


class MoveRequest(_Body):
    status: str


class TransitionRequest(_Body):
    status: str
    actor: Optional[str] = None
    assignee: Optional[str] = None


class CommentRequest(_Body):
    author: Optional[str] = None
    text: str


class Role(str, Enum):
    MANAGER = "manager"
    HANDLER = "handler"
    REFERRALS = "referrals"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_service(request: Request) -> WorkflowService:
    return request.app.state.service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _health(settings: Settings) -> Dict[str, Any]:
    return {"ok": True, "service": settings.service_name, "time": now_ms()}


health_router = APIRouter(tags=["health"])
router = APIRouter(prefix="/api", tags=["items"])


@health_router.get("/health")
def health(settings: Settings = Depends(get_app_settings)) -> Dict[str, Any]:
    return _health(settings)


@router.get("/health")
def api_health(settings: Settings = Depends(get_app_settings)) -> Dict[str, Any]:
    return _health(settings)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@router.get("/items")
def list_items(service: WorkflowService = Depends(get_service)) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in service.list_items()]


@router.post("/items", status_code=201)
def create_item(
    body: CreateItemRequest,
    service: WorkflowService = Depends(get_service),
) -> Dict[str, Any]:
    item = service.create_item(
        body.title,
        item_id=body.id,
        received_date=body.received_date,
        logged_date=body.logged_date,
    )
    return item.to_dict()


@router.get("/items/{item_id}")
def get_item(item_id: str, service: WorkflowService = Depends(get_service)) -> Dict[str, Any]:
    return service.get_item(item_id).to_dict()


@router.put("/items/{item_id}")
def update_item(
    item_id: str,
    body: UpdateDetailsRequest,
    service: WorkflowService = Depends(get_service),
) -> Dict[str, Any]:
    item = service.update_details(
        item_id,
        title=body.title,
        received_date=body.received_date,
        logged_date=body.logged_date,
    )
    return item.to_dict()


@router.delete("/items/{item_id}", status_code=204)
def delete_item(item_id: str, service: WorkflowService = Depends(get_service)) -> Response:
    service.delete_item(item_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Workflow operations
# ---------------------------------------------------------------------------


@router.post("/items/{item_id}/allocate")
def allocate_item(
    item_id: str,
    body: AllocateRequest,
    service: WorkflowService = Depends(get_service),
) -> Dict[str, Any]:
    return service.allocate(item_id, body.handler).to_dict()


@router.post("/items/{item_id}/pick-up")
def pick_up_item(
    item_id: str,
    body: PickUpRequest,
    service: WorkflowService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    actor = body.actor if body.actor is not None else settings.default_actor
    return service.pick_up(item_id, actor).to_dict()


@router.post("/items/{item_id}/move")
def move_item(
    item_id: str,
    body: MoveRequest,
    service: WorkflowService = Depends(get_service),
) -> Dict[str, Any]:
    return service.move(item_id, body.status).to_dict()


@router.post("/items/{item_id}/transition")
def transition_item(
    item_id: str,
    body: TransitionRequest,
    service: WorkflowService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    actor = body.actor if body.actor is not None else settings.default_actor
    item = service.transition(item_id, body.status, actor=actor, assignee=body.assignee)
    return item.to_dict()


@router.post("/items/{item_id}/comments")
def comment_item(
    item_id: str,
    body: CommentRequest,
    service: WorkflowService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    author = body.author if body.author is not None else settings.default_actor
    return service.add_comment(item_id, author, body.text).to_dict()


@router.get("/items/{item_id}/actions")
def item_actions(
    item_id: str,
    actor: Optional[str] = None,
    service: WorkflowService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    items = service.list_items()
    item = next((i for i in items if i.id == item_id), None)
    if item is None:
        raise NotFoundError(item_id)
    actions = views.available_actions(item, actor or settings.default_actor, items)
    return {
        "id": item.id,
        "status": item.status.value,
        "allowed": sorted(s.value for s in ALLOWED_TRANSITIONS[item.status]),
        "actions": [a.model_dump(mode="json") for a in actions],
    }


# ---------------------------------------------------------------------------
# Reference data and projections
# ---------------------------------------------------------------------------


@router.get("/statuses")
def list_statuses() -> List[Dict[str, Any]]:
    return [
        {
            "value": status.value,
            "label": status.label,
            "description": status.description,
            "next": sorted(s.value for s in ALLOWED_TRANSITIONS[status]),
        }
        for status in Status
    ]


@router.get("/summary")
def summary(service: WorkflowService = Depends(get_service)) -> Dict[str, Any]:
    items = service.list_items()
    counts = views.status_summary(items)
    return {
        "counts": {status.value: count for status, count in counts.items()},
        "totals": views.totals(items).model_dump(),
    }


def _grid_rows(
    role: Role,
    items: List[WorkItem],
    actor: str,
    quick: views.QuickFilter,
    criteria: views.ItemFilter,
    now: int,
) -> List[WorkItem]:
    """Role projection, then the inline column filters."""
    if role is Role.MANAGER:
        rows = views.manager_view(items, quick)
    elif role is Role.HANDLER:
        rows = views.handler_view(items, actor)
    else:
        rows = views.referral_view(items)
    return views.filter_items(rows, criteria, now=now)


@router.get("/views/{role}")
def role_view(
    role: Role,
    actor: Optional[str] = None,
    quick: views.QuickFilter = views.QuickFilter.ALL,
    sort: Optional[str] = None,
    direction: views.SortDirection = views.SortDirection.ASC,
    criteria: views.ItemFilter = Depends(),
    service: WorkflowService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
) -> List[Dict[str, Any]]:
    now = service.clock()
    rows = _grid_rows(
        role, service.list_items(), actor or settings.default_actor, quick, criteria, now
    )
    if sort:
        rows = views.sort_items(rows, sort, direction, now=now)
    return [item.to_dict() for item in rows]


@router.get("/export.csv")
def export(
    role: Role = Query(Role.MANAGER),
    actor: Optional[str] = None,
    quick: views.QuickFilter = views.QuickFilter.ALL,
    criteria: views.ItemFilter = Depends(),
    service: WorkflowService = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    now = service.clock()
    rows = _grid_rows(
        role, service.list_items(), actor or settings.default_actor, quick, criteria, now
    )
    return Response(
        content=views.export_csv(rows, now=now),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="work-items.csv"'},
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[WorkflowService] = None,
) -> FastAPI:
    """Build the API application.

    Without an explicit service the collection lives in ``settings.data_file``.
    """
    settings = settings or get_settings()
    if service is None:
        service = WorkflowService(JsonFileItemStore(settings.data_file))

    app = FastAPI(
        title="Complaints Workflow Tracker",
        description="Complaint work items through a fixed status workflow",
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_origin_regex=(
            r"https://.*\.amplifyapp\.com" if settings.allow_amplify_origins else None
        ),
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(ComplaintWorkflowError)
    async def workflow_error_handler(
        request: Request, exc: ComplaintWorkflowError
    ) -> JSONResponse:
        code = error_status_code(exc)
        logger.info(
            "%s %s -> %d %s: %s",
            request.method, request.url.path, code, exc.kind, exc,
        )
        return JSONResponse(
            status_code=code,
            content={"error": exc.kind, "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception on %s %s",
            request.method, request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "server_error", "detail": str(exc) or "Server error"},
        )

    app.include_router(health_router)
    app.include_router(router)
    return app
