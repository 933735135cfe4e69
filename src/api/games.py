"""Game API endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from src.api.schemas import (
    ActionDecisionInfo,
    ActionRequest,
    BuyRequest,
    CatalogEntryInfo,
    CreateGameRequest,
    CreateGameResponse,
    GameDetailResponse,
    GameInfo,
    InventoryItemInfo,
    JoinGameRequest,
    LeaveResponse,
    OverflowRequest,
    OverflowResponse,
    PlayerInfo,
    PlayerRequest,
    PlayerStateResponse,
    QuoteRequestBody,
    QuoteResponse,
    RepayLoanRequest,
    SaleResponse,
    SellRequest,
    TravelPlanInfo,
    TravelRequest,
    TravelResponse,
    TurnResultInfo,
)
from src.core.logging import get_logger
from src.db.database import get_db
from src.services.game_service import GameService
from src.services.market_service import MarketService, QuoteRequest
from src.services.turn_service import TravelPlan, TurnService

logger = get_logger(__name__)

router = APIRouter(prefix="/games", tags=["games"])


# ── Dependencies ─────────────────────────────────────────────
# Services are built per request around the request's session. The event
# bus, reference cache and market seed live on app.state.


def get_game_service(request: Request, db: Session = Depends(get_db)) -> GameService:
    state = request.app.state
    return GameService(db, state.event_bus, state.market_seed, state.reference_cache)


def get_market_service(
    request: Request, db: Session = Depends(get_db)
) -> MarketService:
    state = request.app.state
    return MarketService(db, state.event_bus, state.reference_cache)


def get_turn_service(request: Request, db: Session = Depends(get_db)) -> TurnService:
    state = request.app.state
    return TurnService(db, state.event_bus, state.reference_cache)


def _plan_info(plan: TravelPlan) -> TravelPlanInfo:
    return TravelPlanInfo(
        from_borough_id=plan.from_borough_id,
        to_borough_id=plan.to_borough_id,
        transport_id=plan.transport_id,
        action_cost=plan.cost.action_cost,
        fare=plan.cost.monetary_cost,
        affordable=plan.affordable,
        decision=ActionDecisionInfo.from_core(plan.decision),
    )


# ── Lifecycle ────────────────────────────────────────────────


@router.post("", response_model=CreateGameResponse, status_code=201)
def create_game(
    body: CreateGameRequest, service: GameService = Depends(get_game_service)
) -> CreateGameResponse:
    game, host = service.create_game(body.host_name, body.name, body.max_hours)
    return CreateGameResponse(
        game=GameInfo.from_core(game), host=PlayerInfo.from_core(host)
    )


@router.get("/{game_id}", response_model=GameDetailResponse)
def get_game(
    game_id: str, service: GameService = Depends(get_game_service)
) -> GameDetailResponse:
    view = service.get_game(game_id)
    return GameDetailResponse(
        game=GameInfo.from_core(view.game),
        players=[PlayerInfo.from_core(p) for p in view.players],
        phase=view.phase.value,
        game_time=view.game_time,
    )


@router.post("/{game_id}/join", response_model=PlayerInfo, status_code=201)
def join_game(
    game_id: str,
    body: JoinGameRequest,
    service: GameService = Depends(get_game_service),
) -> PlayerInfo:
    return PlayerInfo.from_core(service.join_game(game_id, body.username))


@router.post("/{game_id}/start", response_model=GameInfo)
def start_game(
    game_id: str, service: GameService = Depends(get_game_service)
) -> GameInfo:
    return GameInfo.from_core(service.start_game(game_id))


@router.post("/leave", response_model=LeaveResponse)
def leave_game(
    body: PlayerRequest, service: GameService = Depends(get_game_service)
) -> LeaveResponse:
    result = service.leave_game(body.player_id)
    return LeaveResponse(
        player_id=body.player_id,
        turn=TurnResultInfo.from_core(result) if result else None,
    )


@router.get("/players/{player_id}", response_model=PlayerStateResponse)
def get_player_state(
    player_id: str, service: GameService = Depends(get_game_service)
) -> PlayerStateResponse:
    view = service.get_state(player_id)
    return PlayerStateResponse(
        player=PlayerInfo.from_core(view.player),
        game=GameInfo.from_core(view.game),
        inventory=[InventoryItemInfo.from_core(i) for i in view.inventory],
        net_worth=view.net_worth,
        game_time=view.game_time,
        actions_remaining=view.actions_remaining,
        phase=view.phase.value,
    )


@router.post("/loan/repay", response_model=PlayerInfo)
def repay_loan(
    body: RepayLoanRequest, service: GameService = Depends(get_game_service)
) -> PlayerInfo:
    return PlayerInfo.from_core(service.repay_loan(body.player_id, body.amount))


# ── Market ───────────────────────────────────────────────────


@router.get("/stores/{store_id}/catalog", response_model=list[CatalogEntryInfo])
def store_catalog(
    store_id: str,
    player_id: str,
    service: MarketService = Depends(get_market_service),
) -> list[CatalogEntryInfo]:
    return [
        CatalogEntryInfo.from_core(entry.listing, entry.quote)
        for entry in service.store_catalog(player_id, store_id)
    ]


@router.post("/quote", response_model=QuoteResponse)
def quote_price(
    body: QuoteRequestBody, service: MarketService = Depends(get_market_service)
) -> QuoteResponse:
    quote = service.quote_price(
        QuoteRequest(
            player_id=body.player_id,
            store_id=body.store_id,
            product_id=body.product_id,
            condition=body.condition,
            side=body.side,
        )
    )
    return QuoteResponse.from_core(quote)


@router.post("/buy", response_model=InventoryItemInfo, status_code=201)
def buy(
    body: BuyRequest, service: MarketService = Depends(get_market_service)
) -> InventoryItemInfo:
    item = service.buy(
        body.player_id,
        body.store_id,
        body.product_id,
        body.condition,
        body.expected_price,
    )
    return InventoryItemInfo.from_core(item)


@router.post("/sell", response_model=SaleResponse)
def sell(
    body: SellRequest, service: MarketService = Depends(get_market_service)
) -> SaleResponse:
    result = service.sell(
        body.player_id, body.item_id, body.store_id, body.expected_price
    )
    return SaleResponse(
        item_id=result.item_id,
        product_id=result.product_id,
        condition=result.condition.value,
        unit_price=result.unit_price,
        cash_delta=result.cash_delta,
        cash_after=result.cash_after,
        remaining_quantity=result.remaining_quantity,
        capped=result.capped,
    )


# ── Turns ────────────────────────────────────────────────────


@router.post("/actions", response_model=ActionDecisionInfo)
def request_action(
    body: ActionRequest, service: TurnService = Depends(get_turn_service)
) -> ActionDecisionInfo:
    return ActionDecisionInfo.from_core(
        service.request_action(body.player_id, body.cost)
    )


@router.post("/actions/overflow", response_model=OverflowResponse)
def confirm_overflow(
    body: OverflowRequest, service: TurnService = Depends(get_turn_service)
) -> OverflowResponse:
    result = service.confirm_overflow(body.player_id, body.cost, body.choice)
    return OverflowResponse(
        choice=result.choice.value,
        overflow=result.overflow,
        actions_used=result.actions_used,
        turn=TurnResultInfo.from_core(result.turn) if result.turn else None,
    )


@router.post("/end-turn", response_model=TurnResultInfo)
def end_turn(
    body: PlayerRequest, service: TurnService = Depends(get_turn_service)
) -> TurnResultInfo:
    return TurnResultInfo.from_core(service.end_turn(body.player_id))


@router.get("/players/{player_id}/travel", response_model=TravelPlanInfo)
def plan_travel(
    player_id: str,
    to_borough_id: str,
    transport_id: str,
    service: TurnService = Depends(get_turn_service),
) -> TravelPlanInfo:
    return _plan_info(service.plan_travel(player_id, to_borough_id, transport_id))


@router.post("/travel", response_model=TravelResponse)
def travel(
    body: TravelRequest, service: TurnService = Depends(get_turn_service)
) -> TravelResponse:
    result = service.travel(
        body.player_id,
        body.to_borough_id,
        body.transport_id,
        confirm_overflow=body.confirm_overflow,
    )
    return TravelResponse(
        plan=_plan_info(result.plan),
        moved=result.moved,
        cash_after=result.cash_after,
        turn=TurnResultInfo.from_core(result.turn) if result.turn else None,
    )
