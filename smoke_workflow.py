#!/usr/bin/env python3
"""
Smoke script: walks one order through its lifecycle against a running server.

Users and products must already exist. Pass their ids through the
environment:

    API_BASE_URL=http://localhost:8000 CLIENT_ID=3 MANAGER_ID=4 \
    ASSEMBLER_ID=2 PRODUCT_ID=1 python smoke_workflow.py
"""
import json
import os
import sys
from uuid import uuid4

import requests

API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:8000")
GRAPHQL_ENDPOINT = f"{API_BASE_URL}/graphql/"

ORDER_FIELDS = """
    id
    status
    acceptanceStatus
    assemblerId
    totalAmount
    items { id productId quantity unitPrice }
"""


class GraphQLClient:
    """Client for the GraphQL API acting as one principal."""

    def __init__(self, user_id: int, role: str, base_url: str = GRAPHQL_ENDPOINT):
        self.base_url = base_url
        self.session = requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "X-User-ID": str(user_id),
            "X-User-Role": role,
        })

    def execute(self, query: str, variables: dict | None = None, idempotency_key: str | None = None) -> dict:
        headers = {"X-Request-ID": str(uuid4())}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        response = self.session.post(
            self.base_url,
            json={"query": query, "variables": variables or {}},
            headers=headers,
            timeout=10,
        )
        payload = response.json()
        print(f"Status: {response.status_code}")
        print(f"Response: {json.dumps(payload, indent=2, ensure_ascii=False)}")
        if payload.get("errors") or "error" in payload:
            raise SystemExit(1)
        return payload["data"]


def main():
    """Run the lifecycle: create, assign, accept, progress, complete."""
    client = GraphQLClient(int(os.environ["CLIENT_ID"]), "CLIENT")
    manager = GraphQLClient(int(os.environ["MANAGER_ID"]), "MANAGER")
    assembler_id = int(os.environ["ASSEMBLER_ID"])
    assembler = GraphQLClient(assembler_id, "ASSEMBLER")
    product_id = int(os.environ.get("PRODUCT_ID", "1"))

    print("=" * 60)
    print("[1] Create order")
    data = client.execute(
        "mutation CreateOrder($input: CreateOrderInput!) { createOrder(input: $input) { %s } }" % ORDER_FIELDS,
        {"input": {"customerPhone": "+7 900 000-00-00", "items": [{"productId": product_id, "quantity": 2}]}},
        idempotency_key=str(uuid4()),
    )
    order_id = data["createOrder"]["id"]

    print("[2] Assign assembler")
    manager.execute(
        "mutation($o: Int!, $a: Int!) { assignAssembler(orderId: $o, assemblerId: $a) { %s } }" % ORDER_FIELDS,
        {"o": order_id, "a": assembler_id},
    )

    print("[3] Accept")
    assembler.execute(
        "mutation($o: Int!) { setAcceptance(orderId: $o, decision: Accepted) { %s } }" % ORDER_FIELDS,
        {"o": order_id},
    )

    for status in ("Processing", "Completed"):
        print(f"[4] Status -> {status}")
        assembler.execute(
            "mutation($o: Int!) { updateStatus(orderId: $o, status: %s) { %s } }" % (status, ORDER_FIELDS),
            {"o": order_id},
        )

    print("=" * 60)
    print(f"Order {order_id} completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
