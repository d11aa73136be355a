"""Business logic services for the distribution ledger."""

from pressledger.services.actor_directory import (
    get_actor,
    list_actors_by_role,
    list_subordinates,
    register_actor,
    resolve_superior,
    role_of,
)
from pressledger.services.aggregation import (
    DailyPoint,
    DailySeries,
    DistributionStats,
    TodayStats,
    UnsoldSummaryRow,
    compute_daily_series,
    compute_stats,
    compute_today_stats,
    compute_unsold_summary,
)
from pressledger.services.exceptions import (
    HierarchyViolationError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    PropagationFailure,
)
from pressledger.services.ledger import (
    PropagationOutcome,
    PropagationReport,
    PropagationStep,
    StatusUpdateResult,
    StepOutcome,
    create_distribution,
    create_pending_shipment,
    get_available_newspapers,
    get_distribution,
    list_distributions,
    update_status,
    update_unsold,
)

__all__ = [
    "DailyPoint",
    "DailySeries",
    "DistributionStats",
    "HierarchyViolationError",
    "InvalidInputError",
    "LedgerError",
    "NotFoundError",
    "PropagationFailure",
    "PropagationOutcome",
    "PropagationReport",
    "PropagationStep",
    "StatusUpdateResult",
    "StepOutcome",
    "TodayStats",
    "UnsoldSummaryRow",
    "compute_daily_series",
    "compute_stats",
    "compute_today_stats",
    "compute_unsold_summary",
    "create_distribution",
    "create_pending_shipment",
    "get_actor",
    "get_available_newspapers",
    "get_distribution",
    "list_actors_by_role",
    "list_distributions",
    "list_subordinates",
    "register_actor",
    "resolve_superior",
    "role_of",
    "update_status",
    "update_unsold",
]
