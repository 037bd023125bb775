"""
The purchase pipeline.

    pending -> paid -> success      payment confirmed, bundle delivered
    pending -> paid -> failed       payment confirmed, delivery failed
    pending -> failed               payment failed

``handle_payment_outcome`` is the single entry point for both the browser
callback and the signed webhook. Every transition is a conditional update from
the expected prior status, so whichever caller wins the ``pending -> paid`` move
is the only one that talks to the aggregator.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from datawaves.errors import (
    IntegrityError,
    NotFoundError,
    PermissionDenied,
    UpstreamError,
    ValidationError,
)
from datawaves.models.admin_alert import AlertSeverity
from datawaves.purchases.state_machine import (
    ConfirmationMethod,
    PaymentOutcome,
    TransactionStatus,
)
from datawaves.services.aggregator_service import Unsupported
from datawaves.services.phone_validation import normalize_network

logger = logging.getLogger(__name__)

WEBHOOK_OUTCOMES = {
    "charge.success": PaymentOutcome.SUCCESS,
    "charge.failed": PaymentOutcome.FAILURE,
}


@dataclass(frozen=True)
class CheckoutSession:
    reference: str
    redirect_url: str
    amount: Decimal
    transaction_id: int
    status: str = TransactionStatus.PENDING.value

    def to_dict(self):
        return {
            "reference": self.reference,
            "redirect_url": self.redirect_url,
            "amount": str(self.amount),
            "status": self.status,
        }


class PurchaseOrchestrator:
    def __init__(self, pricing, validator, payments, aggregator, notifications, repository):
        self.pricing = pricing
        self.validator = validator
        self.payments = payments
        self.aggregator = aggregator
        self.notifications = notifications
        self.repository = repository

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------
    def initiate_purchase(self, user, plan, phone_number, confirmation_method=None,
                          confirmation_contact=None) -> CheckoutSession:
        """
        Validate the number for the plan's network, price the plan, open a
        payment session and record a pending transaction.

        Nothing is persisted and no gateway call is made unless validation
        passes. A gateway failure propagates as PaymentInitializationError
        and leaves no transaction behind.
        """
        if plan is None or not plan.is_active:
            raise NotFoundError("Plan not found", code="PLAN_NOT_FOUND")

        network = normalize_network(plan.provider)
        result = self.validator.validate(phone_number, network)
        if not result.valid:
            logger.warning(
                "Phone validation failed",
                extra={"network": network, "code": result.error_code, "user_id": user.id},
            )
            raise ValidationError(
                result.error,
                code=result.error_code,
                payload={"network": network, "detectedNetwork": result.detected_network},
            )

        method = self._confirmation_method(confirmation_method)
        contact = confirmation_contact or (
            user.email if method is ConfirmationMethod.EMAIL else result.formatted_e164
        )
        amount = self.pricing.charge_amount(plan.base_price, network)

        session = self.payments.initialize(
            user.email,
            amount,
            metadata={
                "user_id": user.id,
                "plan_id": plan.id,
                "network": network,
                "phone_number": result.formatted_e164,
                "confirmation_method": method.value,
            },
        )

        transaction_id = self.repository.create_transaction({
            "user_id": user.id,
            "plan_id": plan.id,
            "network": network,
            "phone_number": result.formatted_e164,
            "amount": amount,
            "payment_reference": session.reference,
            "confirmation_method": method.value,
            "confirmation_contact": contact,
        })

        logger.info(
            "Purchase initiated",
            extra={"reference": session.reference, "plan_id": plan.id, "network": network, "amount": str(amount)},
        )
        return CheckoutSession(
            reference=session.reference,
            redirect_url=session.redirect_url,
            amount=amount,
            transaction_id=transaction_id,
        )

    @staticmethod
    def _confirmation_method(value) -> ConfirmationMethod:
        if not value:
            return ConfirmationMethod.BOTH
        try:
            return ConfirmationMethod(str(value).lower())
        except ValueError:
            raise ValidationError(
                "Confirmation method must be one of email, sms or both",
                code="INVALID_CONFIRMATION_METHOD",
            )

    # ------------------------------------------------------------------
    # Payment outcome
    # ------------------------------------------------------------------
    def handle_payment_outcome(self, reference, outcome) -> Optional[str]:
        """
        React to a payment result for ``reference``.

        Returns the transaction status once handling is done, or None when
        no transaction carries the reference. Repeated or concurrent calls
        for a reference that has already moved on are no-ops.
        """
        outcome = PaymentOutcome(outcome)
        transaction = self.repository.find_transaction_by_reference(reference)
        if transaction is None:
            logger.warning("Payment outcome for unknown reference", extra={"reference": reference, "outcome": outcome.value})
            return None

        if outcome is PaymentOutcome.FAILURE:
            return self._handle_payment_failure(transaction)
        return self._handle_payment_success(transaction)

    def _handle_payment_success(self, transaction) -> str:
        reference = transaction.payment_reference
        if not self.repository.update_transaction_status(reference, TransactionStatus.PENDING, TransactionStatus.PAID):
            return self._current_status(reference)

        try:
            user, plan = self._load_related(transaction)
        except IntegrityError as e:
            logger.error(str(e), extra={"reference": reference, "status": TransactionStatus.PAID.value})
            self.notifications.alert_admins(
                "integrity_error",
                "Transaction Stuck - Missing Records",
                "A paid transaction could not be delivered because its user or plan no longer exists.",
                details={"reference": reference, "user_id": transaction.user_id, "plan_id": transaction.plan_id},
                reference=reference,
            )
            return TransactionStatus.PAID.value

        lookup = self.aggregator.resolve_operator_id(transaction.network)
        if isinstance(lookup, Unsupported):
            logger.error("Operator ID not found for network", extra={"reference": reference, "network": transaction.network})
            self._fail_delivery(
                transaction, user,
                reason="This network is not available for delivery",
                alert_type="operator_not_found",
                subject="Transaction Failed - Operator ID Not Found",
                message="A transaction failed because the operator ID could not be found.",
            )
            return TransactionStatus.FAILED.value

        logger.info(
            "Topup initiated",
            extra={"reference": reference, "operator_id": lookup.operator_id, "amount": str(transaction.amount)},
        )
        try:
            response = self.aggregator.topup(transaction.phone_number, lookup.operator_id, transaction.amount)
        except UpstreamError as e:
            logger.error("Aggregator topup failed", extra={"reference": reference, "error": e.upstream_message})
            self._fail_delivery(
                transaction, user,
                reason=e.upstream_message,
                alert_type="aggregator_failed",
                subject="Transaction Failed - Aggregator Error",
                message="A transaction failed due to an aggregator error.",
                error=e.upstream_message,
            )
            return TransactionStatus.FAILED.value

        self.repository.update_aggregator_response(reference, response)
        self.repository.update_transaction_status(reference, TransactionStatus.PAID, TransactionStatus.SUCCESS)
        self.notifications.notify_purchase_confirmed(transaction, user, plan)
        logger.info("Payment processed successfully", extra={"reference": reference})
        return TransactionStatus.SUCCESS.value

    def _handle_payment_failure(self, transaction) -> str:
        reference = transaction.payment_reference
        if not self.repository.update_transaction_status(reference, TransactionStatus.PENDING, TransactionStatus.FAILED):
            return self._current_status(reference)

        user = self.repository.find_user_by_id(transaction.user_id)
        if user is None:
            logger.error("User not found for transaction", extra={"reference": reference, "user_id": transaction.user_id})
        self.notifications.notify_failure(transaction, user, "Payment failed")
        self.notifications.alert_admins(
            "payment_failed",
            "Payment Failed",
            "A payment transaction failed.",
            details=self._alert_details(transaction),
            reference=reference,
            severity=AlertSeverity.WARNING,
        )
        return TransactionStatus.FAILED.value

    def _fail_delivery(self, transaction, user, reason, alert_type, subject, message, error=None):
        reference = transaction.payment_reference
        self.repository.update_transaction_status(reference, TransactionStatus.PAID, TransactionStatus.FAILED)
        self.notifications.notify_failure(transaction, user, reason)
        details = self._alert_details(transaction)
        if error is not None:
            details["error"] = error
        self.notifications.alert_admins(alert_type, subject, message, details=details, reference=reference)

    def _load_related(self, transaction):
        user = self.repository.find_user_by_id(transaction.user_id)
        if user is None:
            raise IntegrityError(f"User {transaction.user_id} not found for transaction")
        plan = self.repository.find_plan_by_id(transaction.plan_id)
        if plan is None:
            raise IntegrityError(f"Plan {transaction.plan_id} not found for transaction")
        return user, plan

    def _current_status(self, reference) -> Optional[str]:
        transaction = self.repository.find_transaction_by_reference(reference)
        status = transaction.status if transaction is not None else None
        logger.info("Payment outcome already handled", extra={"reference": reference, "status": status})
        return status

    @staticmethod
    def _alert_details(transaction):
        return {
            "transactionId": transaction.payment_reference,
            "network": transaction.network,
            "userId": transaction.user_id,
            "amount": transaction.amount,
        }

    # ------------------------------------------------------------------
    # Inbound gateway events
    # ------------------------------------------------------------------
    def confirm_from_callback(self, reference) -> Optional[PaymentOutcome]:
        """
        Verify a browser callback with the gateway, then run the outcome
        handler.

        Returns None while the gateway still reports the payment as in
        progress; nothing changes in that case and the webhook settles it.
        PaymentVerificationError propagates without any transition.
        """
        verification = self.payments.verify(reference)
        if verification.success:
            outcome = PaymentOutcome.SUCCESS
        elif verification.failed:
            outcome = PaymentOutcome.FAILURE
        else:
            logger.info(
                "Payment not final yet, leaving transaction as is",
                extra={"reference": reference, "status": verification.status},
            )
            return None

        logger.info("Payment callback verified", extra={"reference": reference, "outcome": outcome.value})
        self.handle_payment_outcome(reference, outcome)
        return outcome

    def handle_webhook_event(self, event) -> bool:
        """Route an already authenticated webhook event; False when ignored."""
        event_type = (event or {}).get("event")
        outcome = WEBHOOK_OUTCOMES.get(event_type)
        reference = ((event or {}).get("data") or {}).get("reference")
        if outcome is None or not reference:
            logger.info("Unhandled webhook event type", extra={"event_type": event_type})
            return False

        logger.info("Webhook event received", extra={"event_type": event_type, "reference": reference})
        self.handle_payment_outcome(reference, outcome)
        return True

    # ------------------------------------------------------------------
    # Queries and receipts
    # ------------------------------------------------------------------
    def transaction_for(self, reference, requester):
        transaction = self.repository.find_transaction_by_reference(reference)
        if transaction is None:
            raise NotFoundError("Transaction not found", code="TRANSACTION_NOT_FOUND")
        if transaction.user_id != requester.id and not requester.is_admin:
            raise PermissionDenied("Access denied")
        return transaction

    def resend_receipt(self, reference, requester):
        transaction = self.transaction_for(reference, requester)
        if transaction.status != TransactionStatus.SUCCESS.value:
            raise ValidationError(
                "Receipts are only available for successful transactions",
                code="TRANSACTION_NOT_SUCCESSFUL",
            )
        try:
            user, plan = self._load_related(transaction)
        except IntegrityError as e:
            raise NotFoundError("Transaction details not found", code="TRANSACTION_DETAILS_NOT_FOUND") from e

        report = self.notifications.resend_receipt(transaction, user, plan)
        logger.info(
            "Receipt resent",
            extra={"reference": reference, "channels": [r.channel for r in report.results if r.ok]},
        )
        return report
