"""
Builds the purchase pipeline and its collaborators from app config and keeps
them on ``app.extensions`` for the request handlers and background tasks.
"""

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from datawaves.extensions import db
from datawaves.models.admin_alert import AlertSeverity
from datawaves.models.network_markup import NetworkMarkup
from datawaves.notifications import EmailDispatcher, NotificationCenter, SmsDispatcher
from datawaves.purchases.orchestrator import PurchaseOrchestrator
from datawaves.purchases.repository import PurchaseRepository
from datawaves.services.aggregator_service import ReloadlyClient
from datawaves.services.paystack_service import PaystackClient
from datawaves.services.phone_validation import NumberLookupClient, PhoneValidator
from datawaves.services.pricing_service import MarkupTable, PricingService

logger = logging.getLogger(__name__)

EXTENSION_KEY = "datawaves"


@dataclass
class PurchaseServices:
    markups: MarkupTable
    pricing: PricingService
    validator: PhoneValidator
    payments: PaystackClient
    aggregator: ReloadlyClient
    notifications: NotificationCenter
    repository: PurchaseRepository
    orchestrator: PurchaseOrchestrator


def _persist_markup(network, markup, updated_by=None):
    NetworkMarkup.upsert(network, markup, updated_by=updated_by)


def build_services(config) -> PurchaseServices:
    timeout = config.get("HTTP_TIMEOUT", 10)

    markups = MarkupTable(config.get("DEFAULT_MARKUPS", {}), on_update=_persist_markup)
    pricing = PricingService(markups)

    lookup = None
    if config.get("PHONE_LOOKUP_URL"):
        lookup = NumberLookupClient(
            config["PHONE_LOOKUP_URL"],
            api_key=config.get("PHONE_LOOKUP_API_KEY", ""),
            timeout=timeout,
        )
    validator = PhoneValidator(lookup=lookup, fail_open=config.get("PHONE_CHECK_FAIL_OPEN", True))

    payments = PaystackClient(
        config.get("PAYSTACK_SECRET_KEY"),
        base_url=config.get("PAYSTACK_BASE_URL"),
        callback_url=config.get("PAYSTACK_CALLBACK_URL"),
        timeout=timeout,
    )

    notifications = NotificationCenter(
        email=EmailDispatcher(
            admin_emails=config.get("ADMIN_ALERT_EMAILS"),
            support_email=config.get("SUPPORT_EMAIL"),
            sender=config.get("MAIL_DEFAULT_SENDER"),
        ),
        sms=SmsDispatcher(
            api_key=config.get("SMS_API_KEY"),
            api_url=config.get("SMS_API_URL"),
            admin_phone=config.get("ADMIN_PHONE"),
            support_email=config.get("SUPPORT_EMAIL"),
            timeout=timeout,
        ),
    )

    def alert_low_balance(balance, threshold):
        notifications.alert_admins(
            "low_balance",
            "Low Aggregator Balance",
            f"Aggregator balance {balance.balance} {balance.currency or ''} is below {threshold}.",
            details={"balance": balance.balance, "currency": balance.currency, "threshold": threshold},
            severity=AlertSeverity.WARNING,
        )

    aggregator = ReloadlyClient(
        client_id=config.get("RELOADLY_CLIENT_ID"),
        client_secret=config.get("RELOADLY_CLIENT_SECRET"),
        base_url=config.get("RELOADLY_BASE_URL"),
        auth_url=config.get("RELOADLY_AUTH_URL"),
        operator_ids=config.get("RELOADLY_OPERATOR_IDS"),
        timeout=timeout,
        low_balance_threshold=config.get("LOW_BALANCE_THRESHOLD", 100),
        on_low_balance=alert_low_balance,
    )

    repository = PurchaseRepository()
    orchestrator = PurchaseOrchestrator(
        pricing=pricing,
        validator=validator,
        payments=payments,
        aggregator=aggregator,
        notifications=notifications,
        repository=repository,
    )
    return PurchaseServices(
        markups=markups,
        pricing=pricing,
        validator=validator,
        payments=payments,
        aggregator=aggregator,
        notifications=notifications,
        repository=repository,
        orchestrator=orchestrator,
    )


def load_persisted_markups(services: PurchaseServices) -> None:
    """Persisted markups override configured defaults."""
    try:
        persisted = NetworkMarkup.as_mapping()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning("Persisted markups unavailable, using defaults", extra={"error": str(e)})
        return
    if persisted:
        services.markups.load(persisted)
        logger.info("Loaded persisted markups", extra={"networks": sorted(persisted)})


def init_purchases(app) -> PurchaseServices:
    services = build_services(app.config)
    app.extensions[EXTENSION_KEY] = services
    with app.app_context():
        load_persisted_markups(services)
    return services


def get_services() -> PurchaseServices:
    return current_app.extensions[EXTENSION_KEY]


def get_orchestrator() -> PurchaseOrchestrator:
    return get_services().orchestrator
