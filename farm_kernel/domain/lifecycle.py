"""
Document lifecycle state machine.

Every postable document follows the same three-state workflow:

    DRAFT --post--> POSTED --reverse--> REVERSED (terminal)

The posting runner and reversal service move documents through
``apply_transition``; nothing else writes ``status``.
"""

from dataclasses import dataclass

from farm_kernel.exceptions import InvalidTransitionError
from farm_kernel.logging_config import get_logger
from farm_kernel.models.document import DocumentStatus

logger = get_logger("domain.lifecycle")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    posts_entry: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def find(self, from_state: str, to_state: str) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.to_state == to_state:
                return transition
        return None


PERIOD_OPEN = Guard(
    name="period_open",
    description="Crop cycle open and posting date allowed",
)

POSTING_GROUP_ATTACHED = Guard(
    name="posting_group_attached",
    description="Document carries the posting group being reversed",
)


DOCUMENT_WORKFLOW = Workflow(
    name="postable_document",
    description="Posting lifecycle shared by every source document",
    initial_state=DocumentStatus.DRAFT.value,
    states=(
        DocumentStatus.DRAFT.value,
        DocumentStatus.POSTED.value,
        DocumentStatus.REVERSED.value,
    ),
    transitions=(
        Transition(
            DocumentStatus.DRAFT.value,
            DocumentStatus.POSTED.value,
            action="post",
            guard=PERIOD_OPEN,
            posts_entry=True,
        ),
        Transition(
            DocumentStatus.POSTED.value,
            DocumentStatus.REVERSED.value,
            action="reverse",
            guard=POSTING_GROUP_ATTACHED,
            posts_entry=True,
        ),
    ),
)


def apply_transition(
    document,
    document_type: str,
    to_state: DocumentStatus,
    workflow: Workflow = DOCUMENT_WORKFLOW,
) -> Transition:
    """
    Move ``document.status`` to ``to_state`` if the workflow allows it.

    Raises:
        InvalidTransitionError: No transition from the current status.
    """
    from_state = DocumentStatus(document.status).value
    transition = workflow.find(from_state, to_state.value)
    if transition is None:
        raise InvalidTransitionError(
            document_type, str(document.id), from_state, to_state.value
        )
    document.status = to_state
    logger.debug(
        "document_transitioned",
        extra={
            "document_type": document_type,
            "document_id": str(document.id),
            "from_state": from_state,
            "to_state": to_state.value,
            "action": transition.action,
        },
    )
    return transition
