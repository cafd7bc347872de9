from django.contrib import admin

from storefront.infra.event_store import EventStore
from storefront.infra.models import (
    IdempotencyKey,
    OrderCommentORM,
    OrderItemORM,
    OrderORM,
    ProductORM,
    UserORM,
)


@admin.register(UserORM)
class UserAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "role", "created_at")
    list_filter = ("role",)
    search_fields = ("name", "email")


@admin.register(ProductORM)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "base_price", "created_at")
    search_fields = ("name",)


class OrderItemInline(admin.TabularInline):
    model = OrderItemORM
    extra = 0
    readonly_fields = ("product_id", "name", "unit_price", "quantity")
    can_delete = False


class OrderCommentInline(admin.TabularInline):
    model = OrderCommentORM
    extra = 0
    readonly_fields = ("author", "text", "is_internal", "created_at")
    can_delete = False


@admin.register(OrderORM)
class OrderAdmin(admin.ModelAdmin):
    """Read-only: order changes must go through the lifecycle service."""
    list_display = (
        "id",
        "customer_name",
        "status",
        "acceptance_status",
        "assembler",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "acceptance_status", "created_at")
    search_fields = ("id", "customer_name", "customer_phone")
    inlines = (OrderItemInline, OrderCommentInline)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(EventStore)
class EventStoreAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "event_type", "sequence_number", "created_at")
    list_filter = ("event_type", "created_at")
    readonly_fields = ("id", "order", "event_type", "event_version", "event_data", "sequence_number")


@admin.register(IdempotencyKey)
class IdempotencyAdmin(admin.ModelAdmin):
    list_display = ("key", "user_id", "operation", "created_at")
    list_filter = ("operation", "created_at")
    search_fields = ("key",)
