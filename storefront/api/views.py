"""
GraphQL view with idempotency and logging support.
"""
import hashlib
import json
import logging
from uuid import uuid4

from ariadne import format_error, graphql_sync
from django.db import IntegrityError, transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from graphql import GraphQLError, parse
from graphql.language import FieldNode, OperationDefinitionNode, OperationType

from storefront.api.middleware import ErrorHandler, resolve_principal
from storefront.api.schema import schema
from storefront.domain.errors import OrderError
from storefront.infra.models import IdempotencyKey
from storefront.infra.pii_masker import mask_pii_in_dict

logger = logging.getLogger(__name__)


MUTATION_OPERATIONS = {
    "createOrder": "CREATE_ORDER",
    "assignAssembler": "ASSIGN_ASSEMBLER",
    "setAcceptance": "SET_ACCEPTANCE",
    "updateStatus": "UPDATE_STATUS",
    "updateItemQuantity": "UPDATE_ITEM_QUANTITY",
    "setManualTotal": "SET_MANUAL_TOTAL",
    "setEstimatedCompletionDate": "SET_COMPLETION_DATE",
    "addComment": "ADD_COMMENT",
    "deleteOrder": "DELETE_ORDER",
}


def format_graphql_error(error: GraphQLError, debug: bool = False) -> dict:
    """Attach the typed error code so clients can branch on it."""
    formatted = format_error(error, debug)
    original = error.original_error
    while isinstance(original, GraphQLError) and original.original_error is not None:
        original = original.original_error
    if isinstance(original, OrderError):
        payload = ErrorHandler.to_payload(original)
        formatted["message"] = payload["message"]
        formatted["extensions"] = {
            **formatted.get("extensions", {}),
            "code": payload["code"],
            "details": payload["details"],
        }
    return formatted


class StorefrontGraphQLView:
    """GraphQL view with idempotency and structured logging."""

    def dispatch(self, request, *args, **kwargs):
        """Handle GraphQL request with idempotency."""
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        idempotency_key = request.headers.get("Idempotency-Key")
        principal = resolve_principal(request)

        logger.info(
            "graphql_request",
            extra={
                "request_id": request_id,
                "user_id": principal.id,
                "role": principal.role.value,
                "idempotency_key": idempotency_key[:8] + "..." if idempotency_key else None,
                "operation": "graphql",
            },
        )

        if request.method == "GET":
            return JsonResponse({"message": "GraphQL endpoint. Use POST for queries."})

        try:
            data = json.loads(request.body)
        except json.JSONDecodeError:
            return JsonResponse(
                {"error": {"code": "INVALID_INPUT", "message": "Invalid JSON"}},
                status=400,
            )
        if not isinstance(data, dict):
            return JsonResponse(
                {"error": {"code": "INVALID_INPUT", "message": "Invalid JSON"}},
                status=400,
            )

        operation = self._extract_operation(data.get("query", ""), data.get("operationName"))
        if idempotency_key and operation and principal.id is not None:
            return self._idempotent(request_id, idempotency_key, operation, principal, data)

        return self._execute(request_id, principal, data)

    def _idempotent(self, request_id, idempotency_key, operation, principal, data):
        request_hash = self._create_request_hash(data.get("query", ""), data.get("variables") or {})
        existing = IdempotencyKey.objects.filter(
            key=idempotency_key,
            user_id=principal.id,
            operation=operation,
        ).first()

        if existing:
            if existing.request_hash == request_hash:
                logger.info(
                    "idempotent_request_cached",
                    extra={
                        "request_id": request_id,
                        "user_id": principal.id,
                        "idempotency_key": idempotency_key,
                        "operation": operation,
                    },
                )
                return JsonResponse(existing.response_payload, safe=False)

            logger.warning(
                "idempotency_key_conflict",
                extra={
                    "request_id": request_id,
                    "user_id": principal.id,
                    "idempotency_key": idempotency_key,
                },
            )
            return JsonResponse(
                {
                    "error": {
                        "code": "DUPLICATE_REQUEST",
                        "message": ErrorHandler.message_for("DUPLICATE_REQUEST"),
                    }
                },
                status=ErrorHandler.status_for("DUPLICATE_REQUEST"),
            )

        response = self._execute(request_id, principal, data)
        if response.status_code == 200:
            try:
                with transaction.atomic():
                    IdempotencyKey.objects.create(
                        key=idempotency_key,
                        user_id=principal.id,
                        operation=operation,
                        request_hash=request_hash,
                        response_payload=json.loads(response.content),
                    )
            except IntegrityError:
                # A parallel request with the same key stored its response first
                logger.warning(
                    "idempotency_key_race",
                    extra={
                        "request_id": request_id,
                        "idempotency_key": idempotency_key,
                    },
                )
        return response

    def _execute(self, request_id, principal, data):
        try:
            success, result = graphql_sync(
                schema,
                data,
                context_value={"request_id": request_id, "principal": principal},
                error_formatter=format_graphql_error,
            )
            response = JsonResponse(result, status=200 if success else 400)
        except Exception as e:
            response = ErrorHandler.handle_error(e)

        logger.info(
            "graphql_response",
            extra={
                "request_id": request_id,
                "user_id": principal.id,
                "status": response.status_code,
            },
        )
        if response.status_code != 200:
            logger.debug(
                "graphql_request_variables",
                extra={
                    "request_id": request_id,
                    "variables": mask_pii_in_dict(data.get("variables") or {}),
                },
            )
        return response

    def _create_request_hash(self, query: str, variables: dict) -> str:
        """Create hash of request for deduplication."""
        content = json.dumps({"query": query, "variables": variables}, sort_keys=True)
        return hashlib.sha256(content.encode()).hexdigest()

    def _extract_operation(self, query, operation_name=None) -> str | None:
        """Operation type from the mutation's first root field, None for queries."""
        if not isinstance(query, str):
            return None
        try:
            document = parse(query)
        except GraphQLError:
            # graphql_sync reports the syntax error to the client
            return None

        for definition in document.definitions:
            if not isinstance(definition, OperationDefinitionNode):
                continue
            if operation_name and (definition.name is None or definition.name.value != operation_name):
                continue
            if definition.operation is not OperationType.MUTATION:
                return None
            for selection in definition.selection_set.selections:
                if isinstance(selection, FieldNode):
                    return MUTATION_OPERATIONS.get(selection.name.value)
            return None
        return None


@csrf_exempt
@require_http_methods(["GET", "POST"])
def graphql_view(request):
    """GraphQL endpoint."""
    view = StorefrontGraphQLView()
    return view.dispatch(request)
