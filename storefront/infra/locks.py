"""
Row locks for serializing mutations of one order.
"""
from contextlib import contextmanager

from storefront.domain.errors import NotFound
from storefront.infra.models import OrderORM


@contextmanager
def order_lock(order_id: int):
    """
    Lock the order row until the surrounding transaction ends.

    Usage:
        with transaction.atomic(), order_lock(order_id):
            # read, validate, write
            pass

    SELECT ... FOR UPDATE is a no-op on SQLite, which serializes writers on
    its own. The version check in OrderRepository.save still applies there.
    """
    locked = list(
        OrderORM.objects
        .select_for_update()
        .filter(id=order_id)
        .values_list("id", flat=True)
    )
    if not locked:
        raise NotFound(entity="order", id=order_id)
    # Lock is released when the transaction ends
    yield
