from datawaves.models.user import User, UserRole
from datawaves.models.data_plan import DataPlan
from datawaves.models.transaction import Transaction
from datawaves.models.network_markup import NetworkMarkup
from datawaves.models.admin_alert import AdminAlert, AlertSeverity

__all__ = [
    "User",
    "UserRole",
    "DataPlan",
    "Transaction",
    "NetworkMarkup",
    "AdminAlert",
    "AlertSeverity",
]
