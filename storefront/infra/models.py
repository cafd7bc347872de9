from __future__ import annotations

from django.db import models

from storefront.domain.order import AcceptanceStatus, OrderStatus
from storefront.domain.roles import Role


ROLE_CHOICES = tuple((role.value, role.name.title()) for role in Role)

STATUS_CHOICES = (
    (OrderStatus.PENDING.value, "Ожидает"),
    (OrderStatus.PROCESSING.value, "В работе"),
    (OrderStatus.COMPLETED.value, "Выполнен"),
    (OrderStatus.CANCELLED.value, "Отменен"),
)

ACCEPTANCE_CHOICES = (
    (AcceptanceStatus.PENDING.value, "Ожидает"),
    (AcceptanceStatus.ACCEPTED.value, "Принят"),
    (AcceptanceStatus.REJECTED.value, "Отклонен"),
)

OPERATION_TYPE = (
    ("CREATE_ORDER", "Создание заказа"),
    ("ASSIGN_ASSEMBLER", "Назначение сборщика"),
    ("SET_ACCEPTANCE", "Решение сборщика"),
    ("UPDATE_STATUS", "Смена статуса"),
    ("UPDATE_ITEM_QUANTITY", "Изменение количества"),
    ("SET_MANUAL_TOTAL", "Ручная сумма"),
    ("SET_COMPLETION_DATE", "Дата готовности"),
    ("ADD_COMMENT", "Комментарий"),
    ("DELETE_ORDER", "Удаление заказа"),
)


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class UserORM(TimeStampedModel):
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=Role.CLIENT.value)

    class Meta:
        db_table = "users"
        indexes = [
            models.Index(fields=("role",)),
        ]

    def __str__(self):
        return f"{self.name} ({self.role})"


class ProductORM(TimeStampedModel):
    name = models.CharField(max_length=255)
    image_url = models.CharField(max_length=500, blank=True, default="")
    base_price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = "products"

    def __str__(self):
        return self.name


class OrderORM(TimeStampedModel):
    customer = models.ForeignKey(
        UserORM,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    customer_name = models.CharField(max_length=255, blank=True, default="")
    customer_phone = models.CharField(max_length=64, blank=True, default="")
    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=OrderStatus.PENDING.value,
    )
    acceptance_status = models.CharField(
        max_length=16,
        choices=ACCEPTANCE_CHOICES,
        default=AcceptanceStatus.PENDING.value,
    )
    assembler = models.ForeignKey(
        UserORM,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assembled_orders",
    )
    estimated_completion_date = models.DateField(null=True, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    total_overridden = models.BooleanField(default=False)
    version = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "orders"
        indexes = [
            models.Index(fields=("customer", "status")),
            models.Index(fields=("assembler", "status")),
            models.Index(fields=("-created_at",)),
        ]


class OrderItemORM(TimeStampedModel):
    order = models.ForeignKey(
        OrderORM,
        on_delete=models.CASCADE,
        related_name="items",
    )
    # Snapshot reference: catalog rows may change or vanish later.
    product_id = models.IntegerField()
    name = models.CharField(max_length=255)
    image_url = models.CharField(max_length=500, blank=True, default="")
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField()

    class Meta:
        db_table = "order_items"
        indexes = [
            models.Index(fields=("order",)),
        ]


class OrderCommentORM(TimeStampedModel):
    order = models.ForeignKey(
        OrderORM,
        on_delete=models.CASCADE,
        related_name="comments",
    )
    author = models.CharField(max_length=255, blank=True, default="")
    text = models.TextField()
    is_internal = models.BooleanField(default=False)

    class Meta:
        db_table = "order_comments"
        indexes = [
            models.Index(fields=("order", "created_at")),
        ]


class IdempotencyKey(TimeStampedModel):
    key = models.CharField(max_length=255)
    user_id = models.IntegerField(null=True, blank=True)
    operation = models.CharField(max_length=32, choices=OPERATION_TYPE)
    request_hash = models.CharField(max_length=255)
    response_payload = models.JSONField()

    class Meta:
        db_table = "idempotency_keys"
        unique_together = [("key", "user_id", "operation")]
        indexes = [
            models.Index(fields=("request_hash",)),
        ]
