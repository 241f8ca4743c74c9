"""Transaction Ledger Workflows.

State machine for the asset transaction lifecycle.
"""

from realty_kernel.domain.workflow import Guard, Transition, Workflow
from realty_kernel.logging_config import get_logger

logger = get_logger("modules.transactions.workflows")


RENTAL_ONLY = Guard("rental_only", "Asset kind is a rental (annual or seasonal)")

ACTIVE = "active"
CLOSED = "closed"

ASSET_LIFECYCLE_WORKFLOW = Workflow(
    name="asset_lifecycle",
    description="Asset closing, reactivation, renewal and readjustment",
    initial_state=ACTIVE,
    states=(ACTIVE, CLOSED),
    transitions=(
        Transition(ACTIVE, CLOSED, action="close"),
        Transition(CLOSED, ACTIVE, action="reactivate"),
        Transition(CLOSED, CLOSED, action="renew", guard=RENTAL_ONLY, appends_ledger=True),
        Transition(CLOSED, CLOSED, action="readjust", guard=RENTAL_ONLY, appends_ledger=True),
    ),
)

logger.debug(
    "asset_lifecycle_workflow_registered",
    extra={
        "workflow_name": ASSET_LIFECYCLE_WORKFLOW.name,
        "state_count": len(ASSET_LIFECYCLE_WORKFLOW.states),
        "transition_count": len(ASSET_LIFECYCLE_WORKFLOW.transitions),
    },
)
