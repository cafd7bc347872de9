"""
Infrastructure repositories for domain entities.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from functools import wraps
from typing import Callable, Iterable, TypeVar

from django.db import DatabaseError, transaction
from django.db.models import F, Prefetch
from django.utils import timezone

from storefront.domain.errors import Conflict, NotFound, StorageError
from storefront.domain.order import (
    AcceptanceStatus,
    Order,
    OrderComment,
    OrderItem,
    OrderStatus,
)
from storefront.domain.roles import Role
from storefront.infra.models import (
    OrderCommentORM,
    OrderItemORM,
    OrderORM,
    ProductORM,
    UserORM,
)
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


def translate_storage_errors(func: Callable[..., T]) -> Callable[..., T]:
    """Re-raise database failures as StorageError, keeping the cause chained."""
    @wraps(func)
    def wrapper(*args, **kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except DatabaseError as e:
            logger.error(
                "storage_error",
                extra={
                    "operation": func.__name__,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise StorageError(operation=func.__name__) from e
    return wrapper


@dataclass(frozen=True)
class UserRecord:
    id: int
    name: str
    role: Role


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog data copied onto an order line."""
    id: int
    name: str
    image_url: str
    unit_price: Decimal


class UserDirectory:
    """Read access to users for role checks and author names."""

    def get(self, user_id: int | None) -> UserRecord | None:
        if user_id is None:
            return None
        user = UserORM.objects.filter(id=user_id).first()
        if user is None:
            return None
        return UserRecord(id=user.id, name=user.name, role=Role.parse(user.role))

    def create(self, name: str, email: str, role: Role = Role.CLIENT) -> int:
        """Create new user."""
        user = UserORM.objects.create(name=name, email=email, role=role.value)
        return user.id


class ProductCatalog:
    """Point-in-time product lookups. Never locks catalog rows."""

    def snapshot(self, product_ids: Iterable[int]) -> dict[int, ProductSnapshot]:
        products = ProductORM.objects.filter(id__in=set(product_ids))
        return {
            product.id: ProductSnapshot(
                id=product.id,
                name=product.name,
                image_url=product.image_url,
                unit_price=product.base_price,
            )
            for product in products
        }

    def create(self, name: str, base_price: Decimal, image_url: str = "") -> int:
        product = ProductORM.objects.create(name=name, base_price=base_price, image_url=image_url)
        return product.id


class OrderRepository:
    """Repository for Order aggregate."""

    def _queryset(self):
        return OrderORM.objects.prefetch_related(
            Prefetch("items", queryset=OrderItemORM.objects.order_by("id")),
            Prefetch("comments", queryset=OrderCommentORM.objects.order_by("created_at", "id")),
        )

    def get_by_id(self, order_id: int) -> Order:
        """Get order by ID with items and comments (no N+1)."""
        try:
            order_orm = self._queryset().get(id=order_id)
        except OrderORM.DoesNotExist:
            raise NotFound(entity="order", id=order_id)
        return self._to_domain(order_orm)

    def list(
        self,
        customer_id: int | None = None,
        assembler_id: int | None = None,
        status: OrderStatus | None = None,
        exclude_statuses: Iterable[OrderStatus] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Order]:
        """List orders newest first."""
        orders_orm = self._queryset()
        if customer_id is not None:
            orders_orm = orders_orm.filter(customer_id=customer_id)
        if assembler_id is not None:
            orders_orm = orders_orm.filter(assembler_id=assembler_id)
        if status is not None:
            orders_orm = orders_orm.filter(status=OrderStatus(status).value)
        excluded = [OrderStatus(s).value for s in exclude_statuses]
        if excluded:
            orders_orm = orders_orm.exclude(status__in=excluded)

        orders_orm = orders_orm.order_by("-created_at", "-id")
        if limit is not None:
            orders_orm = orders_orm[offset:offset + limit]
        elif offset:
            orders_orm = orders_orm[offset:]
        return [self._to_domain(order_orm) for order_orm in orders_orm]

    @transaction.atomic
    def save(self, order: Order) -> int:
        """
        Save order aggregate.

        New orders are inserted. Existing orders are written only if the
        stored version still matches ``order.version``; otherwise Conflict.
        Items are diffed against stored rows, comments are insert-only.
        """
        if order.id is None:
            self._insert(order)
        else:
            self._update(order)

        self._save_items(order)
        self._append_comments(order)
        return order.id

    @transaction.atomic
    def delete(self, order_id: int) -> None:
        """Delete order with its items, comments and history."""
        deleted, _ = OrderORM.objects.filter(id=order_id).delete()
        if not deleted:
            raise NotFound(entity="order", id=order_id)

    def _header(self, order: Order) -> dict:
        return {
            "customer_id": order.customer_id,
            "customer_name": order.customer_name,
            "customer_phone": order.customer_phone,
            "status": order.status.value,
            "acceptance_status": order.acceptance_status.value,
            "assembler_id": order.assembler_id,
            "estimated_completion_date": order.estimated_completion_date,
            "total_amount": order.total_amount,
            "total_overridden": order.total_overridden,
        }

    def _insert(self, order: Order) -> None:
        order_orm = OrderORM.objects.create(version=0, **self._header(order))
        order.id = order_orm.id
        order.version = order_orm.version
        order.created_at = order_orm.created_at
        order.updated_at = order_orm.updated_at

    def _update(self, order: Order) -> None:
        updated_at = timezone.now()
        updated = (
            OrderORM.objects
            .filter(id=order.id, version=order.version)
            .update(version=F("version") + 1, updated_at=updated_at, **self._header(order))
        )
        if not updated:
            if not OrderORM.objects.filter(id=order.id).exists():
                raise NotFound(entity="order", id=order.id)
            raise Conflict(order_id=order.id, version=order.version)
        order.version += 1
        order.updated_at = updated_at

    def _save_items(self, order: Order) -> None:
        existing = {
            row.id: row
            for row in OrderItemORM.objects.filter(order_id=order.id)
        }
        kept = set()
        for item in order.items:
            row = existing.get(item.id) if item.id is not None else None
            if row is None:
                row = OrderItemORM.objects.create(
                    order_id=order.id,
                    product_id=item.product_id,
                    name=item.name,
                    image_url=item.image_url,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                )
                item.id = row.id
            elif row.quantity != item.quantity:
                row.quantity = item.quantity
                row.save(update_fields=["quantity", "updated_at"])
            kept.add(item.id)

        stale = set(existing) - kept
        if stale:
            OrderItemORM.objects.filter(id__in=stale).delete()

    def _append_comments(self, order: Order) -> None:
        # Existing comment rows are never touched
        for index, comment in enumerate(order._comments):
            if comment.id is not None:
                continue
            row = OrderCommentORM.objects.create(
                order_id=order.id,
                author=comment.author,
                text=comment.text,
                is_internal=comment.is_internal,
            )
            order._comments[index] = replace(comment, id=row.id, created_at=row.created_at)

    def _to_domain(self, order_orm: OrderORM) -> Order:
        """Convert ORM model to domain entity."""
        items = [
            OrderItem(
                id=item_orm.id,
                product_id=item_orm.product_id,
                name=item_orm.name,
                image_url=item_orm.image_url,
                unit_price=item_orm.unit_price,
                quantity=item_orm.quantity,
            )
            for item_orm in order_orm.items.all()
        ]
        comments = [
            OrderComment(
                id=comment_orm.id,
                author=comment_orm.author,
                text=comment_orm.text,
                is_internal=comment_orm.is_internal,
                created_at=comment_orm.created_at,
            )
            for comment_orm in order_orm.comments.all()
        ]

        return Order(
            id=order_orm.id,
            customer_id=order_orm.customer_id,
            customer_name=order_orm.customer_name,
            customer_phone=order_orm.customer_phone,
            items=items,
            comments=comments,
            status=OrderStatus(order_orm.status),
            acceptance_status=AcceptanceStatus(order_orm.acceptance_status),
            assembler_id=order_orm.assembler_id,
            estimated_completion_date=order_orm.estimated_completion_date,
            total_amount=order_orm.total_amount,
            total_overridden=order_orm.total_overridden,
            version=order_orm.version,
            created_at=order_orm.created_at,
            updated_at=order_orm.updated_at,
        )
