"""
Deposit Engine Module

Credits a client's own balance, capped at a share (25% by default) of the
client's current total of unpaid job prices. The cap is recomputed on every
deposit while holding the client's profile lock, the same lock every payment
debiting that client takes, so it never reflects a half-applied payment.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Optional, Union

from .money import Money, share_of
from .ledger import LedgerStore
from .audit import AuditTrail, AuditEventType
from .exceptions import BrokerageError, Forbidden, InvalidAmount, DepositLimitExceeded
from .logging_config import get_logger, log_action

DEFAULT_CAP_RATIO = Decimal('0.25')


@dataclass(frozen=True)
class DepositReceipt:
    """Outcome of a successful deposit"""
    profile_id: int
    amount: Money
    balance: Money
    cap: Money


class DepositEngine:
    """
    Validates and executes balance deposits
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_trail: Optional[AuditTrail] = None,
        cap_ratio: Union[Decimal, str] = DEFAULT_CAP_RATIO
    ):
        self.store = store
        self.audit_trail = audit_trail
        self.cap_ratio = Decimal(str(cap_ratio))
        if self.cap_ratio < 0:
            raise ValueError("Deposit cap ratio cannot be negative")
        self.logger = get_logger("brokerage.deposits")

    def deposit_cap(self, profile_id: int) -> Money:
        """Largest deposit the client may make right now"""
        return share_of(self.store.unpaid_total_for_client(profile_id), self.cap_ratio)

    def deposit(self, caller_id: int, target_profile_id: int, amount: Money) -> DepositReceipt:
        """
        Deposit into a client's balance

        Args:
            caller_id: Resolved profile id of the caller
            target_profile_id: Profile receiving the funds, must be the caller
            amount: Amount to deposit

        Returns:
            DepositReceipt with the new balance and the cap that applied

        Raises:
            NotFound: target profile does not exist
            Forbidden: target is not the caller, or is not a client
            InvalidAmount: amount is not positive
            DepositLimitExceeded: amount is above the cap (cap itself is allowed)
        """
        try:
            try:
                amount = Money.of(amount)
            except (ValueError, TypeError):
                raise InvalidAmount(f"Invalid deposit amount: {amount!r}")
            target = self.store.require_profile(target_profile_id)
            if caller_id != target_profile_id:
                raise Forbidden("Deposits can only be made into your own balance")
            if not target.is_client:
                raise Forbidden("Only clients can deposit")
            if not amount.is_positive():
                raise InvalidAmount("Deposit amount must be positive")

            with self.store.locked(profile_ids=(target_profile_id,)):
                cap = self.deposit_cap(target_profile_id)
                if amount > cap:
                    raise DepositLimitExceeded(
                        f"Deposit {amount} exceeds the current limit of {cap}"
                    )
                profile = self.store.credit(target_profile_id, amount, user_id=caller_id)
        except BrokerageError as e:
            self._record_rejection(caller_id, target_profile_id, amount, e)
            raise

        return DepositReceipt(
            profile_id=target_profile_id,
            amount=amount,
            balance=profile.balance,
            cap=cap
        )

    def _record_rejection(self, caller_id: int, target_profile_id: int, amount,
                          error: BrokerageError) -> None:
        log_action(
            self.logger, "warning", f"Deposit into profile {target_profile_id} rejected: {error.message}",
            user_id=caller_id, action="deposit", resource=f"profile:{target_profile_id}",
            extra={"error": error.error_code, "amount": str(amount)}
        )
        if not self.audit_trail:
            return
        try:
            self.audit_trail.log_event(
                event_type=AuditEventType.DEPOSIT_REJECTED,
                entity_type="profile",
                entity_id=target_profile_id,
                metadata={"error": error.error_code, "detail": error.message, "amount": str(amount)},
                user_id=caller_id
            )
        except Exception as e:
            self.logger.error(f"Error recording deposit rejection for profile {target_profile_id}: {e}")
