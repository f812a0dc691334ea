"""Pydantic schemas for API requests and responses."""

from typing import Any, Literal

from pydantic import BaseModel, Field


# Table schemas
class CreateTableRequest(BaseModel):
    """Request to open a table; omitted fields use the configured defaults."""

    table_id: str | None = Field(default=None, min_length=1, max_length=64)
    min_bet: int | None = Field(default=None, ge=1)
    max_bet: int | None = Field(default=None, ge=1)
    min_buy_in: int | None = Field(default=None, ge=1)
    max_buy_in: int | None = Field(default=None, ge=1)
    min_seats: int | None = Field(default=None, ge=1)
    max_seats: int | None = Field(default=None, ge=1, le=7)
    rebuy_mode: Literal["off", "once", "on"] | None = None
    action_timeout: float | None = Field(default=None, gt=0)


class CreateTableResponse(BaseModel):
    table_id: str
    phase: str


class JoinRequest(BaseModel):
    """Request to take a seat."""

    user_id: str = Field(..., min_length=1, max_length=64)
    name: str | None = Field(default=None, max_length=64)
    buy_in: int | None = Field(default=None, ge=1, description="Chips to bring to the table")


class JoinResponse(BaseModel):
    player_id: str
    token: str
    buy_in: int
    bankroll: int


class LeaveResponse(BaseModel):
    player_id: str
    refund: int


class BetRequest(BaseModel):
    """Request to place a bet."""

    amount: int = Field(..., ge=1, description="Bet amount")


class BetResponse(BaseModel):
    amount: int
    stack: int


class ActionRequest(BaseModel):
    """Request for player action."""

    action: Literal["hit", "stand", "double", "split", "insurance"]


class ActionResponse(BaseModel):
    action: str
    hand_index: int
    terminal: bool
    cards: list[str]
    busted: bool


class RebuyRequest(BaseModel):
    """Request to accept a rebuy offer."""

    amount: int | None = Field(default=None, ge=1)


class RebuyResponse(BaseModel):
    amount: int
    stack: int


class AutobetRequest(BaseModel):
    """Repeat a bet for a number of rounds; ``rounds`` of 0 cancels."""

    amount: int = Field(default=0, ge=0)
    rounds: int = Field(..., ge=0, le=100)


class AutobetResponse(BaseModel):
    amount: int | None
    remaining: int


class ActionTimeoutRequest(BaseModel):
    seconds: float = Field(..., gt=0)


class ActionTimeoutResponse(BaseModel):
    action_timeout: float


class StopResponse(BaseModel):
    table_id: str
    phase: str
    stop_reason: str | None


class TableStateResponse(BaseModel):
    """Current table state."""

    table_id: str
    phase: str
    round: int
    stop_reason: str | None
    awaiting_player_id: str | None
    cards_remaining: int
    dealer: dict[str, Any]
    players: list[dict[str, Any]]
    settings: dict[str, Any]
    timeline: list[dict[str, Any]]
    legal_actions: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    code: str
    detail: str
