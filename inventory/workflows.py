"""Status transition tables for the stock documents.

Every workflow operation calls :meth:`StateMachine.check` on a locked row
before it mutates anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from inventory.exceptions import InvalidStateTransition
from inventory.models import Assignment, ProductAssignment, PurchaseOrder, StockAdjustment, StockTransfer

logger = logging.getLogger("inventory.workflows")


@dataclass(frozen=True)
class Transition:
    sources: frozenset[str]
    targets: frozenset[str]


@dataclass
class StateMachine:
    entity: str
    transitions: dict[str, Transition] = field(default_factory=dict)
    # Statuses from which an edit or delete of the document is allowed.
    editable: frozenset[str] = frozenset()

    def check(self, instance, action: str) -> None:
        transition = self.transitions[action]
        if instance.status not in transition.sources:
            raise InvalidStateTransition(
                entity=self.entity,
                action=action.replace("_", " "),
                current_status=instance.status,
                allowed=transition.sources,
            )

    def check_editable(self, instance, action: str = "modify") -> None:
        if instance.status not in self.editable:
            raise InvalidStateTransition(
                entity=self.entity,
                action=action,
                current_status=instance.status,
                allowed=self.editable,
            )

    def allowed_targets(self, status: str) -> set[str]:
        targets = set()
        for transition in self.transitions.values():
            if status in transition.sources:
                targets.update(transition.targets)
        return targets

    def is_terminal(self, status: str) -> bool:
        return not self.allowed_targets(status)

    def log(self, instance, action: str, from_status: str, **extra) -> None:
        logger.info(
            "%s_%s",
            self.entity,
            action,
            extra={
                "entity": self.entity,
                "entity_id": instance.id,
                "action": action,
                "from_status": from_status,
                "to_status": instance.status,
                **extra,
            },
        )


def _t(sources, targets):
    return Transition(frozenset(sources), frozenset(targets))


_Transfer = StockTransfer.Status
TRANSFER_WORKFLOW = StateMachine(
    entity="stock_transfer",
    transitions={
        "submit": _t([_Transfer.DRAFT], [_Transfer.PENDING]),
        "approve": _t([_Transfer.PENDING], [_Transfer.APPROVED]),
        "ship": _t([_Transfer.APPROVED], [_Transfer.IN_TRANSIT]),
        "receive": _t(
            [_Transfer.IN_TRANSIT, _Transfer.PARTIALLY_RECEIVED],
            [_Transfer.PARTIALLY_RECEIVED, _Transfer.RECEIVED],
        ),
        "cancel": _t(
            [_Transfer.DRAFT, _Transfer.PENDING, _Transfer.APPROVED, _Transfer.IN_TRANSIT, _Transfer.PARTIALLY_RECEIVED],
            [_Transfer.CANCELLED],
        ),
    },
    editable=frozenset([_Transfer.DRAFT, _Transfer.PENDING]),
)

_Order = PurchaseOrder.Status
PURCHASE_ORDER_WORKFLOW = StateMachine(
    entity="purchase_order",
    transitions={
        "submit": _t([_Order.DRAFT], [_Order.PENDING]),
        "approve": _t([_Order.PENDING], [_Order.APPROVED]),
        "mark_ordered": _t([_Order.APPROVED], [_Order.ORDERED]),
        "receive": _t(
            [_Order.APPROVED, _Order.ORDERED, _Order.PARTIALLY_RECEIVED],
            [_Order.PARTIALLY_RECEIVED, _Order.RECEIVED],
        ),
        "cancel": _t(
            [_Order.DRAFT, _Order.PENDING, _Order.APPROVED, _Order.ORDERED, _Order.PARTIALLY_RECEIVED],
            [_Order.CANCELLED],
        ),
    },
    editable=frozenset([_Order.DRAFT, _Order.PENDING]),
)

_Adjustment = StockAdjustment.Status
ADJUSTMENT_WORKFLOW = StateMachine(
    entity="stock_adjustment",
    transitions={
        "approve": _t([_Adjustment.PENDING], [_Adjustment.APPROVED]),
        "reject": _t([_Adjustment.PENDING], [_Adjustment.REJECTED]),
    },
    editable=frozenset([_Adjustment.PENDING]),
)

_Assigned = ProductAssignment.Status
PRODUCT_ASSIGNMENT_WORKFLOW = StateMachine(
    entity="product_assignment",
    transitions={
        "acknowledge": _t([_Assigned.ASSIGNED], [_Assigned.IN_USE]),
        "return": _t([_Assigned.ASSIGNED, _Assigned.IN_USE], [_Assigned.RETURNED]),
        "mark_outcome": _t(
            [_Assigned.ASSIGNED, _Assigned.IN_USE],
            [_Assigned.LOST, _Assigned.DAMAGED, _Assigned.TRANSFERRED],
        ),
    },
    editable=frozenset([_Assigned.ASSIGNED, _Assigned.IN_USE]),
)

_Reserved = Assignment.Status
ASSIGNMENT_WORKFLOW = StateMachine(
    entity="assignment",
    transitions={
        "return": _t([_Reserved.ASSIGNED], [_Reserved.RETURNED]),
    },
    editable=frozenset([_Reserved.ASSIGNED]),
)
