"""
GraphQL schema definition using Ariadne.
"""
import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from ariadne import (
    EnumType,
    MutationType,
    QueryType,
    ScalarType,
    load_schema_from_path,
    make_executable_schema,
)

from storefront.domain.order import AcceptanceStatus, Order, OrderStatus
from storefront.domain.roles import Principal
from storefront.services import OrderService

# Load schema from .graphql files
SCHEMAS_DIR = Path(__file__).parent / "schemas"
type_defs = "\n".join([
    load_schema_from_path(SCHEMAS_DIR / "common.graphql"),
    load_schema_from_path(SCHEMAS_DIR / "query.graphql"),
    load_schema_from_path(SCHEMAS_DIR / "mutation.graphql"),
])

query = QueryType()
mutation = MutationType()
order_status_enum = EnumType("OrderStatus", {status.value: status for status in OrderStatus})
acceptance_status_enum = EnumType(
    "AcceptanceStatus",
    {acceptance.value: acceptance for acceptance in AcceptanceStatus},
)


def _principal(info) -> Principal:
    return info.context["principal"]


def _service(info) -> OrderService:
    return info.context.get("service") or OrderService()


def serialize_order(order: Order, actor: Principal) -> dict:
    """Order as the GraphQL ``Order`` type, with comments filtered for the actor."""
    return {
        "id": order.id,
        "customerId": order.customer_id,
        "customerName": order.customer_name,
        "customerPhone": order.customer_phone,
        "status": order.status,
        "acceptanceStatus": order.acceptance_status,
        "assemblerId": order.assembler_id,
        "estimatedCompletionDate": order.estimated_completion_date,
        "totalAmount": order.total_amount,
        "totalOverridden": order.total_overridden,
        "version": order.version,
        "items": [
            {
                "id": item.id,
                "productId": item.product_id,
                "name": item.name,
                "imageUrl": item.image_url,
                "unitPrice": item.unit_price,
                "quantity": item.quantity,
                "subtotal": item.subtotal,
            }
            for item in order.items
        ],
        "comments": [
            {
                "id": comment.id,
                "author": comment.author,
                "text": comment.text,
                "isInternal": comment.is_internal,
                "createdAt": comment.created_at,
            }
            for comment in order.comments_visible_to(actor)
        ],
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
    }


@query.field("order")
def resolve_order(_, info, id):
    """Resolve order query."""
    actor = _principal(info)
    return serialize_order(_service(info).get_order(id, actor), actor)


@query.field("orders")
def resolve_orders(_, info, status=None, limit=None, offset=0):
    """Resolve orders visible to the caller, newest first."""
    actor = _principal(info)
    orders = _service(info).list_orders(actor, status=status, limit=limit, offset=offset or 0)
    return [serialize_order(order, actor) for order in orders]


@query.field("orderHistory")
def resolve_order_history(_, info, orderId):
    events = _service(info).get_history(orderId, _principal(info))
    return [
        {
            "id": event["id"],
            "sequenceNumber": event["sequence_number"],
            "eventType": event["event_type"],
            "data": json.dumps(event["data"], ensure_ascii=False),
            "occurredAt": event["occurred_at"],
        }
        for event in events
    ]


@mutation.field("createOrder")
def resolve_create_order(_, info, input: dict):
    """Resolve create order mutation. Prices always come from the catalog."""
    actor = _principal(info)
    items_list = [
        {
            "productId": item["productId"],
            "quantity": item["quantity"],
        }
        for item in input["items"]
    ]
    order = _service(info).create_order(
        actor,
        items_list,
        customer_name=input.get("customerName"),
        customer_phone=input.get("customerPhone"),
        comment=input.get("comment"),
    )
    return serialize_order(order, actor)


@mutation.field("assignAssembler")
def resolve_assign_assembler(_, info, orderId, assemblerId):
    actor = _principal(info)
    return serialize_order(_service(info).assign_assembler(orderId, assemblerId, actor), actor)


@mutation.field("setAcceptance")
def resolve_set_acceptance(_, info, orderId, decision):
    actor = _principal(info)
    return serialize_order(_service(info).set_acceptance(orderId, decision, actor), actor)


@mutation.field("updateStatus")
def resolve_update_status(_, info, orderId, status):
    actor = _principal(info)
    return serialize_order(_service(info).update_status(orderId, status, actor), actor)


@mutation.field("updateItemQuantity")
def resolve_update_item_quantity(_, info, orderId, itemId, delta):
    actor = _principal(info)
    order = _service(info).update_item_quantity(orderId, itemId, delta, actor)
    return serialize_order(order, actor)


@mutation.field("setManualTotal")
def resolve_set_manual_total(_, info, orderId, totalAmount):
    actor = _principal(info)
    return serialize_order(_service(info).set_manual_total(orderId, totalAmount, actor), actor)


@mutation.field("setEstimatedCompletionDate")
def resolve_set_estimated_completion_date(_, info, orderId, date=None):
    actor = _principal(info)
    order = _service(info).set_estimated_completion_date(orderId, date, actor)
    return serialize_order(order, actor)


@mutation.field("addComment")
def resolve_add_comment(_, info, orderId, text, isInternal=False, author=None):
    actor = _principal(info)
    order = _service(info).add_comment(orderId, text, bool(isInternal), actor, author=author)
    return serialize_order(order, actor)


@mutation.field("deleteOrder")
def resolve_delete_order(_, info, orderId):
    _service(info).delete_order(orderId, _principal(info))
    return True


# Define custom scalars
decimal_scalar = ScalarType("Decimal")
date_scalar = ScalarType("Date")
datetime_scalar = ScalarType("DateTime")


@decimal_scalar.serializer
def serialize_decimal(value):
    """Serialize Decimal to string with two places."""
    return f"{Decimal(value):.2f}"


@decimal_scalar.value_parser
def parse_decimal_value(value):
    """Parse Decimal from string."""
    return Decimal(str(value))


@date_scalar.serializer
def serialize_date(value):
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@date_scalar.value_parser
def parse_date_value(value):
    """Parse Date from YYYY-MM-DD string."""
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


@datetime_scalar.serializer
def serialize_datetime(value):
    """Serialize DateTime to ISO format string."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


@datetime_scalar.value_parser
def parse_datetime_value(value):
    """Parse DateTime from string."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


# Create executable schema
schema = make_executable_schema(
    type_defs,
    query,
    mutation,
    order_status_enum,
    acceptance_status_enum,
    decimal_scalar,
    date_scalar,
    datetime_scalar,
)
