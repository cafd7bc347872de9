"""
Domain model for Order aggregate.

The aggregate is the only place where order state changes. Every public
mutation takes the acting ``Principal`` and checks, in order: permission,
current state, then the payload. Nothing is modified until all checks pass.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum

from storefront.domain.errors import (
    Forbidden,
    InvalidAssignee,
    InvalidInput,
    InvalidItem,
    InvalidState,
    InvalidTransition,
    NotFound,
)
from storefront.domain.roles import Principal, Role


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class AcceptanceStatus(str, Enum):
    """Assembler acceptance enumeration."""
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


# One step at a time, assigned assembler only.
ASSEMBLER_PROGRESSION = {
    OrderStatus.PENDING: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.COMPLETED,
}

# Money columns are DECIMAL(12, 2); quantities fit a 32-bit integer column.
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.99")
MAX_QUANTITY = 2147483647


def _now() -> datetime:
    return datetime.now(timezone.utc)


class OrderItem:
    """Order line with product data snapshotted at order time."""

    def __init__(
        self,
        product_id: int,
        name: str,
        unit_price: Decimal,
        quantity: int,
        image_url: str = "",
        id: int | None = None,
    ):
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidItem(product_id=product_id, quantity=quantity)
        if quantity < 1 or quantity > MAX_QUANTITY:
            raise InvalidItem(product_id=product_id, quantity=quantity)
        if unit_price < 0 or unit_price > MAX_AMOUNT:
            raise InvalidItem(product_id=product_id, unit_price=str(unit_price))
        if unit_price * quantity > MAX_AMOUNT:
            raise InvalidItem(product_id=product_id, quantity=quantity, reason="amount_too_large")

        self.id = id
        self.product_id = product_id
        self.name = name
        self.image_url = image_url
        self.unit_price = unit_price
        self.quantity = quantity

    @property
    def subtotal(self) -> Decimal:
        """Calculate item subtotal."""
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class OrderComment:
    """Append-only remark on an order."""
    author: str
    text: str
    is_internal: bool = False
    id: int | None = None
    created_at: datetime | None = None


class Order:
    """Order aggregate root."""

    def __init__(
        self,
        id: int | None = None,
        customer_id: int | None = None,
        customer_name: str = "",
        customer_phone: str = "",
        items: list[OrderItem] | None = None,
        comments: list[OrderComment] | None = None,
        status: OrderStatus = OrderStatus.PENDING,
        acceptance_status: AcceptanceStatus = AcceptanceStatus.PENDING,
        assembler_id: int | None = None,
        estimated_completion_date: date | None = None,
        total_amount: Decimal | None = None,
        total_overridden: bool = False,
        version: int = 0,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id
        self.customer_id = customer_id
        self.customer_name = customer_name
        self.customer_phone = customer_phone
        self._items = list(items or [])
        self._comments = list(comments or [])
        self._status = OrderStatus(status)
        self._acceptance_status = AcceptanceStatus(acceptance_status)
        self._assembler_id = assembler_id
        self._estimated_completion_date = estimated_completion_date
        self.version = version
        self.created_at = created_at
        self.updated_at = updated_at

        if total_amount is None:
            self._recompute_total()
        else:
            self._total_amount = Decimal(total_amount)
            self._total_overridden = total_overridden

    @classmethod
    def place(
        cls,
        customer_id: int | None,
        customer_name: str,
        customer_phone: str,
        items: list[OrderItem],
        comment: str | None = None,
    ) -> Order:
        """Create a new pending order from priced lines."""
        if not items:
            raise InvalidItem(reason="empty")

        order = cls(
            customer_id=customer_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            items=items,
        )
        if comment and comment.strip():
            order._comments.append(OrderComment(
                author=customer_name,
                text=comment.strip(),
                is_internal=False,
                created_at=_now(),
            ))
        return order

    @property
    def items(self) -> list[OrderItem]:
        return list(self._items)

    @property
    def comments(self) -> list[OrderComment]:
        return list(self._comments)

    @property
    def new_comments(self) -> list[OrderComment]:
        """Comments appended since the order was loaded."""
        return [comment for comment in self._comments if comment.id is None]

    @property
    def status(self) -> OrderStatus:
        return self._status

    @property
    def acceptance_status(self) -> AcceptanceStatus:
        return self._acceptance_status

    @property
    def assembler_id(self) -> int | None:
        return self._assembler_id

    @property
    def estimated_completion_date(self) -> date | None:
        return self._estimated_completion_date

    @property
    def total_amount(self) -> Decimal:
        return self._total_amount

    @property
    def total_overridden(self) -> bool:
        return self._total_overridden

    # Visibility

    def is_assigned_to(self, actor: Principal) -> bool:
        return (
            actor.role is Role.ASSEMBLER
            and actor.id is not None
            and actor.id == self._assembler_id
        )

    def can_view(self, actor: Principal) -> bool:
        role = actor.role
        if role in (Role.ADMIN, Role.MANAGER):
            return True
        if role is Role.ASSEMBLER:
            return self.is_assigned_to(actor)
        if role is Role.CLIENT:
            return actor.id is not None and actor.id == self.customer_id
        if role is Role.GUEST:
            return False
        raise AssertionError(f"unhandled role {role!r}")

    def comments_visible_to(self, actor: Principal) -> list[OrderComment]:
        """Customers never see internal notes."""
        if actor.role is Role.CLIENT:
            return [comment for comment in self._comments if not comment.is_internal]
        return self.comments

    def check_can_delete(self, actor: Principal) -> None:
        if actor.role is not Role.ADMIN:
            raise Forbidden(operation="delete_order", role=actor.role, order_id=self.id)

    # Mutations

    def assign_assembler(
        self,
        assembler_id: int,
        assignee_role: Role | None,
        actor: Principal,
    ) -> int | None:
        """Assign (or reassign) an assembler. Returns the previous one."""
        if not actor.role.is_staff:
            raise Forbidden(operation="assign_assembler", role=actor.role, order_id=self.id)
        self._ensure_open("assign_assembler")
        if assignee_role is None:
            raise NotFound(entity="user", id=assembler_id)
        if assignee_role is not Role.ASSEMBLER:
            raise InvalidAssignee(assembler_id=assembler_id, role=assignee_role)

        previous = self._assembler_id
        self._assembler_id = assembler_id
        self._acceptance_status = AcceptanceStatus.PENDING
        self._estimated_completion_date = None
        self._touch()
        return previous

    def decide_acceptance(self, decision: AcceptanceStatus | str, actor: Principal) -> None:
        """Assigned assembler accepts or rejects the order, once."""
        if not self.is_assigned_to(actor):
            raise Forbidden(operation="set_acceptance", role=actor.role, order_id=self.id)
        try:
            decision = AcceptanceStatus(decision)
        except ValueError:
            raise InvalidInput(field="decision", value=str(decision))
        if decision is AcceptanceStatus.PENDING:
            raise InvalidInput(field="decision", value=decision)
        self._ensure_open("set_acceptance")
        if self._acceptance_status is not AcceptanceStatus.PENDING:
            raise InvalidState(
                order_id=self.id,
                operation="set_acceptance",
                acceptance_status=self._acceptance_status,
            )

        self._acceptance_status = decision
        self._touch()

    def change_status(self, new_status: OrderStatus | str, actor: Principal) -> OrderStatus:
        """Move the order to ``new_status``. Returns the previous status."""
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise InvalidInput(field="status", value=str(new_status))

        role = actor.role
        if role in (Role.ADMIN, Role.MANAGER):
            self._ensure_not_terminal(new_status)
        elif role is Role.ASSEMBLER:
            if not self.is_assigned_to(actor):
                raise Forbidden(operation="update_status", role=role, order_id=self.id)
            if self._acceptance_status is not AcceptanceStatus.ACCEPTED:
                raise Forbidden(
                    operation="update_status",
                    role=role,
                    order_id=self.id,
                    acceptance_status=self._acceptance_status,
                )
            self._ensure_not_terminal(new_status)
            if new_status is OrderStatus.CANCELLED:
                raise Forbidden(operation="cancel_order", role=role, order_id=self.id)
            if ASSEMBLER_PROGRESSION.get(self._status) is not new_status:
                raise InvalidState(
                    order_id=self.id,
                    operation="update_status",
                    from_status=self._status,
                    to_status=new_status,
                )
        elif role in (Role.CLIENT, Role.GUEST):
            raise Forbidden(operation="update_status", role=role, order_id=self.id)
        else:
            raise AssertionError(f"unhandled role {role!r}")

        previous = self._status
        self._status = new_status
        self._touch()
        return previous

    def change_item_quantity(self, item_id: int, delta: int, actor: Principal) -> tuple[int, int]:
        """Apply ``delta`` to a line. Returns (old, new) quantity."""
        if not (actor.role.is_staff or self.is_assigned_to(actor)):
            raise Forbidden(operation="update_item_quantity", role=actor.role, order_id=self.id)
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidInput(field="delta", value=str(delta))
        self._ensure_open("update_item_quantity")

        item = next((item for item in self._items if item.id == item_id), None)
        if item is None:
            raise NotFound(entity="order_item", id=item_id, order_id=self.id)

        old_quantity = item.quantity
        new_quantity = max(0, old_quantity + delta)
        new_total = self._items_total() - item.subtotal + item.unit_price * new_quantity
        if new_quantity > MAX_QUANTITY or new_total > MAX_AMOUNT:
            raise InvalidItem(
                order_id=self.id,
                item_id=item_id,
                quantity=new_quantity,
                reason="amount_too_large",
            )

        if new_quantity == 0:
            self._items.remove(item)
        else:
            item.quantity = new_quantity

        self._recompute_total()
        self._touch()
        return old_quantity, new_quantity

    def override_total(self, new_total: Decimal | str, actor: Principal) -> Decimal:
        """Set a negotiated total. Returns the previous total."""
        if not actor.role.is_staff:
            raise Forbidden(operation="set_manual_total", role=actor.role, order_id=self.id)
        self._ensure_open("set_manual_total")
        try:
            new_total = Decimal(str(new_total))
        except InvalidOperation:
            raise InvalidInput(field="total_amount", value=str(new_total))
        if not new_total.is_finite() or new_total < 0 or new_total > MAX_AMOUNT:
            raise InvalidInput(field="total_amount", value=str(new_total))
        if new_total != new_total.quantize(CENT):
            raise InvalidInput(field="total_amount", value=str(new_total), reason="precision")
        new_total = new_total.quantize(CENT)

        previous = self._total_amount
        self._total_amount = new_total
        self._total_overridden = True
        self._touch()
        return previous

    def schedule_completion(self, completion_date: date | None, actor: Principal) -> None:
        """Assigned assembler sets (or clears) the planned completion date."""
        if not self.is_assigned_to(actor):
            raise Forbidden(
                operation="set_estimated_completion_date",
                role=actor.role,
                order_id=self.id,
            )
        self._ensure_open("set_estimated_completion_date")

        self._estimated_completion_date = completion_date
        self._touch()

    def add_comment(
        self,
        text: str,
        is_internal: bool,
        author: str,
        actor: Principal,
    ) -> OrderComment:
        """Append a comment. Allowed on terminal orders too."""
        if not self.can_view(actor):
            raise Forbidden(operation="add_comment", role=actor.role, order_id=self.id)
        if is_internal and actor.role is Role.CLIENT:
            raise Forbidden(operation="add_internal_comment", role=actor.role, order_id=self.id)
        text = (text or "").strip()
        if not text:
            raise InvalidInput(field="text")

        comment = OrderComment(
            author=author,
            text=text,
            is_internal=bool(is_internal),
            created_at=_now(),
        )
        self._comments.append(comment)
        self._touch()
        return comment

    def _items_total(self) -> Decimal:
        return sum(
            (item.subtotal for item in self._items if item.quantity > 0),
            Decimal("0.00"),
        )

    def _recompute_total(self) -> None:
        total = self._items_total()
        if total > MAX_AMOUNT:
            raise InvalidItem(order_id=self.id, total_amount=str(total), reason="amount_too_large")
        self._total_amount = total
        self._total_overridden = False

    def _ensure_open(self, operation: str) -> None:
        if self._status.is_terminal:
            raise InvalidState(order_id=self.id, operation=operation, status=self._status)

    def _ensure_not_terminal(self, new_status: OrderStatus) -> None:
        if self._status.is_terminal:
            raise InvalidTransition(
                order_id=self.id,
                from_status=self._status,
                to_status=new_status,
            )

    def _touch(self) -> None:
        self.updated_at = _now()
