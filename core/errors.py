"""Exception taxonomy for the blackjack table."""


class BlackjackError(Exception):
    """Base class for all table errors."""

    code = "error"

    def __init__(self, message: str | None = None, **details: object) -> None:
        self.details = details
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return self.code


class ValidationError(BlackjackError):
    """A request was rejected; table state is unchanged."""

    code = "invalidRequest"


class InvalidAmount(ValidationError):
    code = "invalidAmount"


class BelowMinimum(ValidationError):
    code = "belowMinimum"

    def default_message(self) -> str:
        return f"Amount is below the minimum of {self.details.get('minimum')}"


class AboveMaximum(ValidationError):
    code = "aboveMaximum"

    def default_message(self) -> str:
        return f"Amount is above the maximum of {self.details.get('maximum')}"


class InsufficientFunds(ValidationError):
    """The player's stack cannot cover the wager."""

    code = "insufficientFunds"


class InsufficientBankroll(ValidationError):
    """The player's bankroll cannot cover the buy-in."""

    code = "insufficientBankroll"


class IllegalAction(ValidationError):
    """Action is not in the currently legal set."""

    code = "illegalAction"

    def default_message(self) -> str:
        action = self.details.get("action")
        legal = self.details.get("legal")
        if legal is not None:
            return f"Cannot {action} now (legal: {', '.join(legal) or 'none'})"
        return f"Cannot {action} now"


class ActionInProgress(IllegalAction):
    """Another action for the same player is still being processed."""

    code = "actionInProgress"

    def default_message(self) -> str:
        return "Another action is already in progress"


class NotYourTurn(IllegalAction):
    code = "notYourTurn"

    def default_message(self) -> str:
        return "It is not this player's turn"


class PlayerNotSeated(ValidationError):
    code = "playerNotSeated"


class AlreadySeated(ValidationError):
    code = "alreadySeated"


class TableFull(ValidationError):
    code = "tableFull"


class AlreadySettled(BlackjackError):
    """A payout or insurance resolution was attempted twice."""

    code = "alreadySettled"


class EmptyDeck(BlackjackError):
    code = "emptyDeck"

    def default_message(self) -> str:
        return (
            f"Cannot draw {self.details.get('requested')} cards, "
            f"{self.details.get('remaining')} remaining"
        )


class TableStopping(BlackjackError):
    """The table is shutting down and accepts no new seats."""

    code = "tableStopping"


class PersistenceFailure(BlackjackError):
    """The profile store failed; the in-memory change was rolled back."""

    code = "persistenceFailure"
