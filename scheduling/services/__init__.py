"""
Scheduling services module.

Provides the workflows the API layer calls.

Services:
- exchange_service: Exchange request manager (create, list, get)
- exchange_transitions: Exchange state transition engine (confirm/decline/cancel/approve)
- cancellation_service: Booking cancellation workflow
- booking_service: Booking listing and post-booking notes
- policy_service: Provider policy lookup and provider settings updates
- reminder_service: Post-swap reminder scheduling and due-reminder delivery
- duplicate_cleanup: Best-effort removal of stray duplicate bookings after a swap
"""

from scheduling.services.booking_service import list_bookings, update_booking_notes
from scheduling.services.cancellation_service import (
    CancellationDecision,
    request_cancellation,
    resolve_cancellation,
)
from scheduling.services.duplicate_cleanup import remove_duplicate_bookings
from scheduling.services.exchange_service import (
    create_exchange,
    get_exchange,
    list_exchanges,
)
from scheduling.services.exchange_transitions import (
    ExchangeAction,
    apply_exchange_action,
    execute_exchange,
)
from scheduling.services.policy_service import (
    get_provider_policy,
    get_settings_for_provider,
    update_provider_policy,
)
from scheduling.services.reminder_service import (
    dispatch_due_reminders,
    schedule_swap_reminders,
)

__all__ = [
    # Exchanges
    "create_exchange",
    "get_exchange",
    "list_exchanges",
    "ExchangeAction",
    "apply_exchange_action",
    "execute_exchange",
    # Bookings
    "CancellationDecision",
    "request_cancellation",
    "resolve_cancellation",
    "list_bookings",
    "update_booking_notes",
    # Policy
    "get_provider_policy",
    "get_settings_for_provider",
    "update_provider_policy",
    # Side effects
    "schedule_swap_reminders",
    "dispatch_due_reminders",
    "remove_duplicate_bookings",
]
