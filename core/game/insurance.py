"""Insurance side-bet offered when the dealer shows an ace."""

from dataclasses import dataclass

from core.errors import IllegalAction, InsufficientFunds
from core.game.events import EventEmitter, EventType
from core.hand import Hand
from core.ledger import BankrollLedger
from core.player import InsuranceRecord, Player

INSURANCE_PAYOUT_MULTIPLIER = 3  # stake back plus 2:1


@dataclass(frozen=True)
class InsuranceResolution:
    """What resolving a player's insurance did."""

    paid_out: bool = False
    payout: int = 0
    net: int = 0
    already_settled: bool = False


def insurance_cost(initial_bet: int) -> int:
    """Insurance costs half the opening wager, rounded down."""
    return initial_bet // 2


class InsuranceManager:
    """Offer, sell and settle insurance."""

    def __init__(self, ledger: BankrollLedger, events: EventEmitter) -> None:
        self._ledger = ledger
        self._events = events

    @staticmethod
    def should_offer(dealer_hand: Hand) -> bool:
        """Insurance is on offer while the dealer's up card is an ace."""
        return bool(dealer_hand.cards) and dealer_hand.cards[0].is_ace

    def can_insure(self, player: Player, hand: Hand, dealer_hand: Hand) -> bool:
        """Check every purchase condition for the player's current hand."""
        if not self.should_offer(dealer_hand):
            return False
        cost = insurance_cost(player.bets.initial)
        if cost < 1:
            return False
        if player.bets.insurance > 0 or player.status.insurance.wager > 0:
            return False
        if len(hand.cards) != 2:
            return False
        return self._ledger.can_afford(player, cost)

    def purchase(self, player: Player, hand: Hand, dealer_hand: Hand) -> int:
        """
        Buy insurance for half the opening wager.

        Returns:
            The insurance wager withdrawn from the stack
        """
        if not self.can_insure(player, hand, dealer_hand):
            raise IllegalAction(action="insurance")

        wager = insurance_cost(player.bets.initial)
        if not self._ledger.withdraw(player, wager):
            raise InsufficientFunds(amount=wager, stack=player.stack)

        player.bets.insurance = wager
        player.bets.total += wager
        player.status.insurance = InsuranceRecord(wager=wager, settled=False)

        self._events.emit_new(
            EventType.INSURANCE_TAKEN,
            player_id=player.id,
            amount=wager,
            total_bet=player.bets.total,
        )
        return wager

    def resolve(self, player: Player, dealer_has_blackjack: bool) -> InsuranceResolution:
        """
        Settle the player's insurance once the dealer's hand is known.

        Resolving an already settled record changes nothing.
        """
        record = player.status.insurance
        if record.wager < 1:
            return InsuranceResolution()
        if record.settled:
            return InsuranceResolution(already_settled=True)

        if not dealer_has_blackjack:
            record.settled = True
            self._events.emit_new(
                EventType.INSURANCE_LOSES, player_id=player.id, amount=record.wager
            )
            return InsuranceResolution(net=-record.wager)

        payout = record.wager * INSURANCE_PAYOUT_MULTIPLIER
        self._ledger.deposit(player, payout)
        record.settled = True

        net = payout - record.wager
        player.status.winnings.gross += payout
        player.status.winnings.net += net

        self._events.emit_new(EventType.INSURANCE_WINS, player_id=player.id, amount=payout)
        return InsuranceResolution(paid_out=True, payout=payout, net=net)
