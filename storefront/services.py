"""
Application services for the order lifecycle.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

from django.db import transaction

from storefront.domain.errors import Forbidden, InvalidItem, NotFound
from storefront.domain.events import (
    AcceptanceDecided,
    AssemblerAssigned,
    CommentAdded,
    CompletionDateScheduled,
    DomainEvent,
    ItemQuantityChanged,
    OrderCreated,
    OrderStatusChanged,
    TotalOverridden,
)
from storefront.domain.order import (
    AcceptanceStatus,
    Order,
    OrderItem,
    OrderStatus,
)
from storefront.domain.roles import Principal, Role
from storefront.infra.event_store import EventStoreRepository
from storefront.infra.locks import order_lock
from storefront.infra.repositories import (
    OrderRepository,
    ProductCatalog,
    UserDirectory,
    translate_storage_errors,
)
import logging


logger = logging.getLogger(__name__)


class OrderService:
    """Order lifecycle engine: every order mutation goes through here."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        catalog: ProductCatalog | None = None,
        users: UserDirectory | None = None,
        event_store_repo: EventStoreRepository | None = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.catalog = catalog or ProductCatalog()
        self.users = users or UserDirectory()
        self.event_store_repo = event_store_repo or EventStoreRepository()

    @translate_storage_errors
    @transaction.atomic
    def create_order(
        self,
        actor: Principal,
        items: list[dict],
        customer_name: str | None = None,
        customer_phone: str | None = None,
        comment: str | None = None,
    ) -> Order:
        """Create pending order priced from the catalog."""
        if not items:
            raise InvalidItem(reason="empty")

        customer_id = None
        if actor.role is not Role.GUEST:
            customer = self.users.get(actor.id)
            if customer is None:
                raise NotFound(entity="user", id=actor.id)
            customer_id = customer.id
            customer_name = customer_name or customer.name

        products = self.catalog.snapshot(item.get("productId") for item in items)
        lines = []
        for item in items:
            product = products.get(item.get("productId"))
            if product is None:
                raise InvalidItem(product_id=item.get("productId"))
            lines.append(OrderItem(
                product_id=product.id,
                name=product.name,
                image_url=product.image_url,
                unit_price=product.unit_price,
                quantity=item.get("quantity"),
            ))

        order = Order.place(
            customer_id=customer_id,
            customer_name=customer_name or "",
            customer_phone=customer_phone or "",
            items=lines,
            comment=comment,
        )
        self.order_repo.save(order)

        self._record(OrderCreated(
            event_id=uuid4(),
            aggregate_id=order.id,
            event_type="OrderCreated",
            customer_id=customer_id,
            total_amount=order.total_amount,
            items_count=len(order.items),
            actor_id=actor.id,
        ))
        self._log("order_created", order, actor)
        return self.order_repo.get_by_id(order.id)

    @translate_storage_errors
    @transaction.atomic
    def assign_assembler(self, order_id: int, assembler_id: int, actor: Principal) -> Order:
        """Manager/Admin assigns an assembler; acceptance starts over."""
        with order_lock(order_id):
            order = self.order_repo.get_by_id(order_id)
            assignee = self.users.get(assembler_id)
            previous = order.assign_assembler(
                assembler_id,
                assignee.role if assignee else None,
                actor,
            )
            self.order_repo.save(order)
            self._record(AssemblerAssigned(
                event_id=uuid4(),
                aggregate_id=order.id,
                event_type="AssemblerAssigned",
                assembler_id=assembler_id,
                previous_assembler_id=previous,
                actor_id=actor.id,
            ))
        self._log("assembler_assigned", order, actor)
        return self.order_repo.get_by_id(order_id)

    @translate_storage_errors
    @transaction.atomic
    def set_acceptance(
        self,
        order_id: int,
        decision: AcceptanceStatus | str,
        actor: Principal,
    ) -> Order:
        """Assigned assembler accepts or rejects. Rejection triggers nothing else."""
        with order_lock(order_id):
            order = self.order_repo.get_by_id(order_id)
            order.decide_acceptance(decision, actor)
            self.order_repo.save(order)
            self._record(AcceptanceDecided(
                event_id=uuid4(),
                aggregate_id=order.id,
                event_type="AcceptanceDecided",
                decision=order.acceptance_status.value,
                actor_id=actor.id,
            ))
        self._log("acceptance_decided", order, actor)
        return self.order_repo.get_by_id(order_id)

    @translate_storage_errors
    @transaction.atomic
    def update_status(
        self,
        order_id: int,
        new_status: OrderStatus | str,
        actor: Principal,
    ) -> Order:
        with order_lock(order_id):
            order = self.order_repo.get_by_id(order_id)
            previous = order.change_status(new_status, actor)
            self.order_repo.save(order)
            self._record(OrderStatusChanged(
                event_id=uuid4(),
                aggregate_id=order.id,
                event_type="OrderStatusChanged",
                old_status=previous.value,
                new_status=order.status.value,
                actor_id=actor.id,
            ))
        self._log("order_status_changed", order, actor)
        return self.order_repo.get_by_id(order_id)

    @translate_storage_errors
    @transaction.atomic
    def update_item_quantity(
        self,
        order_id: int,
        item_id: int,
        delta: int,
        actor: Principal,
    ) -> Order:
        """Change a line quantity; total is recomputed in the same write."""
        with order_lock(order_id):
            order = self.order_repo.get_by_id(order_id)
            overridden_total = order.total_amount if order.total_overridden else None
            old_quantity, new_quantity = order.change_item_quantity(item_id, delta, actor)
            self.order_repo.save(order)
            self._record(ItemQuantityChanged(
                event_id=uuid4(),
                aggregate_id=order.id,
                event_type="ItemQuantityChanged",
                item_id=item_id,
                old_quantity=old_quantity,
                new_quantity=new_quantity,
                total_amount=order.total_amount,
                discarded_total=overridden_total,
                actor_id=actor.id,
            ))
        if overridden_total is not None:
            logger.warning(
                "manual_total_discarded",
                extra={
                    "operation": "update_item_quantity",
                    "order_id": order_id,
                    "user_id": actor.id,
                },
            )
        self._log("item_quantity_changed", order, actor)
        return self.order_repo.get_by_id(order_id)

    @translate_storage_errors
    @transaction.atomic
    def set_manual_total(self, order_id: int, new_total: Decimal, actor: Principal) -> Order:
        """Negotiated price. Item rows are left as they are."""
        with order_lock(order_id):
            order = self.order_repo.get_by_id(order_id)
            previous = order.override_total(new_total, actor)
            self.order_repo.save(order)
            self._record(TotalOverridden(
                event_id=uuid4(),
                aggregate_id=order.id,
                event_type="TotalOverridden",
                old_total=previous,
                new_total=order.total_amount,
                actor_id=actor.id,
            ))
        self._log("total_overridden", order, actor)
        return self.order_repo.get_by_id(order_id)

    @translate_storage_errors
    @transaction.atomic
    def set_estimated_completion_date(
        self,
        order_id: int,
        completion_date: date | None,
        actor: Principal,
    ) -> Order:
        with order_lock(order_id):
            order = self.order_repo.get_by_id(order_id)
            order.schedule_completion(completion_date, actor)
            self.order_repo.save(order)
            self._record(CompletionDateScheduled(
                event_id=uuid4(),
                aggregate_id=order.id,
                event_type="CompletionDateScheduled",
                estimated_completion_date=completion_date,
                actor_id=actor.id,
            ))
        self._log("completion_date_scheduled", order, actor)
        return self.order_repo.get_by_id(order_id)

    @translate_storage_errors
    @transaction.atomic
    def add_comment(
        self,
        order_id: int,
        text: str,
        is_internal: bool,
        actor: Principal,
        author: str | None = None,
    ) -> Order:
        """Append a remark. Works on terminal orders too."""
        with order_lock(order_id):
            order = self.order_repo.get_by_id(order_id)
            if not author:
                user = self.users.get(actor.id)
                author = user.name if user else actor.role.value.title()
            comment = order.add_comment(text, is_internal, author, actor)
            self.order_repo.save(order)
            self._record(CommentAdded(
                event_id=uuid4(),
                aggregate_id=order.id,
                event_type="CommentAdded",
                author=comment.author,
                is_internal=comment.is_internal,
                actor_id=actor.id,
            ))
        self._log("comment_added", order, actor)
        return self.order_repo.get_by_id(order_id)

    @translate_storage_errors
    @transaction.atomic
    def delete_order(self, order_id: int, actor: Principal) -> None:
        with order_lock(order_id):
            order = self.order_repo.get_by_id(order_id)
            order.check_can_delete(actor)
            self.order_repo.delete(order_id)
        self._log("order_deleted", order, actor)

    @translate_storage_errors
    def get_order(self, order_id: int, actor: Principal) -> Order:
        """Get order by ID if the actor may see it."""
        order = self.order_repo.get_by_id(order_id)
        if not order.can_view(actor):
            raise Forbidden(operation="get_order", role=actor.role, order_id=order_id)
        return order

    @translate_storage_errors
    def list_orders(
        self,
        actor: Principal,
        status: OrderStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Order]:
        """Orders visible to the actor, newest first."""
        role = actor.role
        if not role.is_staff and actor.id is None:
            raise Forbidden(operation="list_orders", role=role)

        if role in (Role.ADMIN, Role.MANAGER):
            scope = {}
        elif role is Role.ASSEMBLER:
            scope = {
                "assembler_id": actor.id,
                "exclude_statuses": (OrderStatus.CANCELLED,),
            }
        elif role is Role.CLIENT:
            scope = {"customer_id": actor.id}
        elif role is Role.GUEST:
            raise Forbidden(operation="list_orders", role=role)
        else:
            raise AssertionError(f"unhandled role {role!r}")

        return self.order_repo.list(status=status, limit=limit, offset=offset, **scope)

    @translate_storage_errors
    def get_history(self, order_id: int, actor: Principal) -> list[dict]:
        """Order event history, oldest first. Back office only."""
        if not actor.role.is_staff:
            raise Forbidden(operation="get_history", role=actor.role, order_id=order_id)
        self.order_repo.get_by_id(order_id)
        return self.event_store_repo.get_events(order_id)

    def _record(self, event: DomainEvent) -> None:
        self.event_store_repo.save_event(event)

    def _log(self, message: str, order: Order, actor: Principal) -> None:
        logger.info(
            message,
            extra={
                "operation": message,
                "order_id": order.id,
                "user_id": actor.id,
                "role": actor.role.value,
                "status": order.status.value,
            },
        )
