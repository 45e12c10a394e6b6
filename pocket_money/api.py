from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, Header, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .balances import BalanceAggregator
from .config import Settings, get_settings
from .exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidReferenceError,
    NotFoundError,
    PocketMoneyError,
    TransientError,
)
from .groups import GroupService
from .logging_config import configure_logging
from .models import (
    Chore,
    CreateChoreRequest,
    CreateGroupRequest,
    CreateInviteRequest,
    CreateLedgerEntryRequest,
    CreateSettlementRequest,
    Group,
    GroupDetail,
    Invite,
    JoinGroupRequest,
    LedgerEntry,
    MemberBalance,
    MemberWithUser,
    RegisterUserRequest,
    Settlement,
    UpdateChoreRequest,
    User,
)
from .service import LedgerService
from .settlements import SettlementService
from .storage import InMemoryStorage

logger = structlog.get_logger(__name__)

HTTP_STATUS_BY_ERROR = (
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidReferenceError, status.HTTP_400_BAD_REQUEST),
    (InvalidArgumentError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (TransientError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


@dataclass
class Services:
    ledger: LedgerService
    balances: BalanceAggregator
    groups: GroupService
    settlements: SettlementService

    @classmethod
    def build(cls, storage: InMemoryStorage, settings: Settings) -> "Services":
        return cls(
            ledger=LedgerService(storage),
            balances=BalanceAggregator(storage),
            groups=GroupService(storage, invite_expiry_days=settings.invite_expiry_days),
            settlements=SettlementService(storage),
        )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_caller_id(x_user_id: UUID = Header(..., description="Id of the authenticated caller")) -> UUID:
    return x_user_id


router = APIRouter()


@router.get("/health", tags=["System"])
def health_check(request: Request):
    return {"status": "healthy", "service": request.app.state.settings.app_name}


@router.post("/users", response_model=User, status_code=status.HTTP_201_CREATED, tags=["Users"])
def register_user(request: RegisterUserRequest, services: Services = Depends(get_services)) -> User:
    return services.groups.register_user(request)


@router.get("/users/me", response_model=User, tags=["Users"])
def get_current_user(caller_id: UUID = Depends(get_caller_id), services: Services = Depends(get_services)) -> User:
    return services.groups.get_user(caller_id)


@router.post("/groups", response_model=Group, status_code=status.HTTP_201_CREATED, tags=["Groups"])
def create_group(
    request: CreateGroupRequest,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> Group:
    return services.groups.create_group(caller_id, request)


@router.get("/groups", response_model=list[Group], tags=["Groups"])
def list_groups(caller_id: UUID = Depends(get_caller_id), services: Services = Depends(get_services)):
    return services.groups.list_groups(caller_id)


@router.post("/groups/join", response_model=Group, tags=["Groups"])
def join_group(
    request: JoinGroupRequest,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> Group:
    return services.groups.join_group(caller_id, request)


@router.get("/groups/{group_id}", response_model=GroupDetail, tags=["Groups"])
def get_group(
    group_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> GroupDetail:
    return services.groups.get_group(group_id, caller_id)


@router.get("/groups/{group_id}/members", response_model=list[MemberWithUser], tags=["Groups"])
def list_members(
    group_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    return services.groups.list_members(group_id, caller_id)


@router.post("/groups/{group_id}/invite", response_model=Invite, status_code=status.HTTP_201_CREATED, tags=["Groups"])
def create_invite(
    group_id: UUID,
    request: Optional[CreateInviteRequest] = None,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> Invite:
    return services.groups.create_invite(group_id, caller_id, request)


@router.get("/groups/{group_id}/chores", response_model=list[Chore], tags=["Chores"])
def list_chores(
    group_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    return services.groups.list_chores(group_id, caller_id)


@router.post("/groups/{group_id}/chores", response_model=Chore, status_code=status.HTTP_201_CREATED, tags=["Chores"])
def create_chore(
    group_id: UUID,
    request: CreateChoreRequest,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> Chore:
    return services.groups.create_chore(group_id, caller_id, request)


@router.patch("/groups/{group_id}/chores/{chore_id}", response_model=Chore, tags=["Chores"])
def update_chore(
    group_id: UUID,
    chore_id: UUID,
    request: UpdateChoreRequest,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> Chore:
    return services.groups.update_chore(group_id, chore_id, caller_id, request)


@router.delete("/groups/{group_id}/chores/{chore_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Chores"])
def delete_chore(
    group_id: UUID,
    chore_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> Response:
    services.groups.delete_chore(group_id, chore_id, caller_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/groups/{group_id}/ledger", response_model=list[LedgerEntry], tags=["Ledger"])
def list_ledger(
    group_id: UUID,
    status: Optional[str] = None,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    return services.ledger.list_for_group(group_id, caller_id, status)


@router.post("/groups/{group_id}/ledger", response_model=LedgerEntry, status_code=status.HTTP_201_CREATED, tags=["Ledger"])
def create_ledger_entry(
    group_id: UUID,
    request: CreateLedgerEntryRequest,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> LedgerEntry:
    return services.ledger.create_entry(group_id, caller_id, request)


@router.get("/groups/{group_id}/pending", response_model=list[LedgerEntry], tags=["Ledger"])
def list_pending(
    group_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    return services.ledger.list_pending(group_id, caller_id)


@router.get("/ledger/{entry_id}", response_model=LedgerEntry, tags=["Ledger"])
def get_ledger_entry(
    entry_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> LedgerEntry:
    return services.ledger.get_entry(entry_id, caller_id)


@router.post("/ledger/{entry_id}/approve", response_model=LedgerEntry, tags=["Ledger"])
def approve_ledger_entry(
    entry_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> LedgerEntry:
    return services.ledger.approve_entry(entry_id, caller_id)


@router.post("/ledger/{entry_id}/reject", response_model=LedgerEntry, tags=["Ledger"])
def reject_ledger_entry(
    entry_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> LedgerEntry:
    return services.ledger.reject_entry(entry_id, caller_id)


@router.get("/groups/{group_id}/balance", response_model=list[MemberBalance], tags=["Balances"])
def get_balance(
    group_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    return services.balances.compute_balances(group_id, caller_id)


@router.get("/groups/{group_id}/settlements", response_model=list[Settlement], tags=["Settlements"])
def list_settlements(
    group_id: UUID,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    return services.settlements.list_settlements(group_id, caller_id)


@router.post("/groups/{group_id}/settlements", response_model=Settlement, status_code=status.HTTP_201_CREATED, tags=["Settlements"])
def create_settlement(
    group_id: UUID,
    request: CreateSettlementRequest,
    caller_id: UUID = Depends(get_caller_id),
    services: Services = Depends(get_services),
) -> Settlement:
    return services.settlements.create_settlement(group_id, caller_id, request)


async def handle_service_error(request: Request, exc: PocketMoneyError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped_status in HTTP_STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = mapped_status
            break
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=status_code, content={"error": exc.message, "code": exc.code})


def create_app(
    storage: Optional[InMemoryStorage] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Pocket Money API",
        description="Chore ledger with head approval, balances and cash settlements for families and shared homes",
        version="1.0.0",
        debug=settings.debug,
        root_path=settings.root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if storage is None:
        storage = InMemoryStorage(
            seed_demo_data=settings.seed_demo_data,
            timeout_seconds=settings.store_timeout_seconds,
        )
    app.state.settings = settings
    app.state.services = Services.build(storage, settings)

    app.add_exception_handler(PocketMoneyError, handle_service_error)
    app.include_router(router)

    logger.info("app_created", environment=settings.environment, seed_demo_data=settings.seed_demo_data)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
