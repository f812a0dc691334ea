"""Table API endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Header, HTTPException, Request
from starlette.applications import Starlette
from starlette.requests import HTTPConnection

from api.schemas import (
    ActionRequest,
    ActionResponse,
    ActionTimeoutRequest,
    ActionTimeoutResponse,
    AutobetRequest,
    AutobetResponse,
    BetRequest,
    BetResponse,
    CreateTableRequest,
    CreateTableResponse,
    JoinRequest,
    JoinResponse,
    LeaveResponse,
    RebuyRequest,
    RebuyResponse,
    StopResponse,
    TableStateResponse,
)
from api.session import extract_seat, get_player_signer, get_profile_store
from config import config
from core.game import BlackjackTable, StopReason, TableManager, TableSettings

router = APIRouter()


async def ensure_table_manager(app: Starlette) -> TableManager:
    """Get the app's table manager, creating it on first use."""
    manager = getattr(app.state, "table_manager", None)
    if manager is None:
        store = await get_profile_store()
        manager = TableManager(store, TableSettings.from_config(config.table))
        app.state.table_manager = manager
    return manager


async def get_table_manager(connection: HTTPConnection) -> TableManager:
    return await ensure_table_manager(connection.app)


def _get_table(manager: TableManager, table_id: str) -> BlackjackTable:
    table = manager.get(table_id)
    if table is None:
        raise HTTPException(status_code=404, detail=f"Table {table_id} not found")
    return table


def seat_from_token(table_id: str, token: str | None) -> str:
    """Resolve the player id from a signed seat token."""
    seat = extract_seat(token) if token else None
    if seat is None or seat["table_id"] != table_id:
        raise HTTPException(status_code=401, detail="Invalid or missing player token")
    return seat["player_id"]


PlayerToken = Annotated[str | None, Header(alias="X-Player-Token")]


@router.post("")
async def create_table(request: CreateTableRequest, connection: Request) -> CreateTableResponse:
    """Open a new table."""
    manager = await get_table_manager(connection)
    overrides: dict[str, Any] = request.model_dump(exclude_none=True, exclude={"table_id"})
    try:
        settings = manager.default_settings.with_overrides(**overrides)
        table = manager.create_table(table_id=request.table_id, settings=settings)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CreateTableResponse(table_id=table.id, phase=table.phase.name.lower())


@router.get("/{table_id}")
async def get_state(
    table_id: str,
    connection: Request,
    token: PlayerToken = None,
) -> TableStateResponse:
    """Get current table state."""
    table = _get_table(await get_table_manager(connection), table_id)
    state = table.snapshot()
    if token:
        player_id = seat_from_token(table_id, token)
        if player_id in table.players:
            state["legal_actions"] = table.legal_actions(player_id)
    return TableStateResponse(**state)


@router.post("/{table_id}/join")
async def join_table(
    table_id: str,
    request: JoinRequest,
    connection: Request,
) -> JoinResponse:
    """Take a seat; the returned token identifies the player on later calls."""
    table = _get_table(await get_table_manager(connection), table_id)
    player = await table.join(request.user_id, request.name, request.buy_in)
    return JoinResponse(
        player_id=player.id,
        token=get_player_signer().sign(table.id, player.id),
        buy_in=player.pending_buy_in or player.stack,
        bankroll=player.bankroll,
    )


@router.post("/{table_id}/start")
async def start_table(table_id: str, connection: Request) -> TableStateResponse:
    """Start dealing rounds."""
    table = _get_table(await get_table_manager(connection), table_id)
    table.start()
    return TableStateResponse(**table.snapshot())


@router.post("/{table_id}/leave")
async def leave_table(table_id: str, connection: Request, token: PlayerToken = None) -> LeaveResponse:
    """Leave the table; chips go back to the bankroll."""
    table = _get_table(await get_table_manager(connection), table_id)
    player_id = seat_from_token(table_id, token)
    refund = await table.leave(player_id)
    return LeaveResponse(player_id=player_id, refund=refund)


@router.post("/{table_id}/bet")
async def place_bet(
    table_id: str,
    request: BetRequest,
    connection: Request,
    token: PlayerToken = None,
) -> BetResponse:
    """Place a bet during the betting window."""
    table = _get_table(await get_table_manager(connection), table_id)
    player_id = seat_from_token(table_id, token)
    amount = table.bet(player_id, request.amount)
    return BetResponse(amount=amount, stack=table.players[player_id].stack)


@router.post("/{table_id}/action")
async def player_action(
    table_id: str,
    request: ActionRequest,
    connection: Request,
    token: PlayerToken = None,
) -> ActionResponse:
    """Execute a player action."""
    table = _get_table(await get_table_manager(connection), table_id)
    player_id = seat_from_token(table_id, token)
    outcome = await table.act(player_id, request.action)
    return ActionResponse(
        action=outcome.action.value,
        hand_index=outcome.hand_index,
        terminal=outcome.terminal,
        cards=outcome.cards,
        busted=outcome.busted,
    )


@router.post("/{table_id}/rebuy")
async def rebuy(
    table_id: str,
    request: RebuyRequest,
    connection: Request,
    token: PlayerToken = None,
) -> RebuyResponse:
    """Accept an open rebuy offer."""
    table = _get_table(await get_table_manager(connection), table_id)
    player_id = seat_from_token(table_id, token)
    amount = await table.rebuy(player_id, request.amount)
    return RebuyResponse(amount=amount, stack=table.players[player_id].stack)


@router.post("/{table_id}/autobet")
async def autobet(
    table_id: str,
    request: AutobetRequest,
    connection: Request,
    token: PlayerToken = None,
) -> AutobetResponse:
    """Register or cancel a repeating bet."""
    table = _get_table(await get_table_manager(connection), table_id)
    player_id = seat_from_token(table_id, token)
    result = table.set_autobet(player_id, request.amount, request.rounds)
    if result is None:
        return AutobetResponse(amount=None, remaining=0)
    return AutobetResponse(amount=result.amount, remaining=result.remaining)


@router.put("/{table_id}/action-timeout")
async def update_action_timeout(
    table_id: str,
    request: ActionTimeoutRequest,
    connection: Request,
) -> ActionTimeoutResponse:
    """Change the per-decision timeout (clamped into the allowed range)."""
    table = _get_table(await get_table_manager(connection), table_id)
    return ActionTimeoutResponse(action_timeout=table.update_action_timeout(request.seconds))


@router.post("/{table_id}/stop")
async def stop_table(table_id: str, connection: Request) -> StopResponse:
    """Stop the table and refund every seat."""
    manager = await get_table_manager(connection)
    table = _get_table(manager, table_id)
    await manager.remove(table_id, StopReason.MANUAL)
    return StopResponse(
        table_id=table.id,
        phase=table.phase.name.lower(),
        stop_reason=table.stop_reason.value if table.stop_reason else None,
    )
