"""
Unit tests for domain models.
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase

from storefront.domain.errors import (
    Forbidden,
    InvalidAssignee,
    InvalidInput,
    InvalidItem,
    InvalidState,
    InvalidTransition,
    NotFound,
)
from storefront.domain.order import (
    AcceptanceStatus,
    Order,
    OrderItem,
    OrderStatus,
)
from storefront.domain.roles import Principal, Role


ADMIN = Principal(id=1, role=Role.ADMIN)
ASSEMBLER = Principal(id=2, role=Role.ASSEMBLER)
CLIENT = Principal(id=3, role=Role.CLIENT)
MANAGER = Principal(id=4, role=Role.MANAGER)
OTHER_ASSEMBLER = Principal(id=5, role=Role.ASSEMBLER)
GUEST = Principal.guest()


def make_order(**kwargs) -> Order:
    items = [
        OrderItem(id=10, product_id=1, name="Окно ПВХ", unit_price=Decimal("5600.00"), quantity=2),
        OrderItem(id=11, product_id=8, name="Подоконник", unit_price=Decimal("600.00"), quantity=1),
    ]
    return Order(id=1001, customer_id=CLIENT.id, customer_name="Иван", items=items, **kwargs)


def accepted_order(**kwargs) -> Order:
    return make_order(
        assembler_id=ASSEMBLER.id,
        acceptance_status=AcceptanceStatus.ACCEPTED,
        **kwargs,
    )


class RoleTest(TestCase):

    def test_parse_is_case_insensitive(self):
        self.assertIs(Role.parse("admin"), Role.ADMIN)
        self.assertIs(Role.parse("Manager"), Role.MANAGER)
        self.assertIs(Role.parse(" ASSEMBLER "), Role.ASSEMBLER)

    def test_parse_empty_is_guest(self):
        self.assertIs(Role.parse(None), Role.GUEST)
        self.assertIs(Role.parse(""), Role.GUEST)

    def test_parse_unknown_role_fails(self):
        with self.assertRaises(ValueError):
            Role.parse("superuser")

    def test_staff_roles(self):
        self.assertTrue(Role.ADMIN.is_staff)
        self.assertTrue(Role.MANAGER.is_staff)
        self.assertFalse(Role.ASSEMBLER.is_staff)
        self.assertFalse(Role.CLIENT.is_staff)
        self.assertFalse(Role.GUEST.is_staff)


class OrderItemTest(TestCase):
    """Tests for OrderItem."""

    def test_subtotal(self):
        item = OrderItem(product_id=1, name="Окно", unit_price=Decimal("5600.00"), quantity=2)
        self.assertEqual(item.subtotal, Decimal("11200.00"))

    def test_zero_quantity_fails(self):
        with self.assertRaises(InvalidItem):
            OrderItem(product_id=1, name="Окно", unit_price=Decimal("1.00"), quantity=0)

    def test_non_integer_quantity_fails(self):
        with self.assertRaises(InvalidItem):
            OrderItem(product_id=1, name="Окно", unit_price=Decimal("1.00"), quantity=1.5)

    def test_negative_price_fails(self):
        with self.assertRaises(InvalidItem):
            OrderItem(product_id=1, name="Окно", unit_price=Decimal("-1.00"), quantity=1)


class PlaceOrderTest(TestCase):

    def test_total_is_sum_of_lines(self):
        order = Order.place(
            customer_id=CLIENT.id,
            customer_name="Иван",
            customer_phone="+79001234567",
            items=[
                OrderItem(product_id=1, name="Окно", unit_price=Decimal("5600"), quantity=2),
                OrderItem(product_id=8, name="Подоконник", unit_price=Decimal("600"), quantity=1),
            ],
        )
        self.assertEqual(order.total_amount, Decimal("11800"))
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.acceptance_status, AcceptanceStatus.PENDING)
        self.assertIsNone(order.assembler_id)
        self.assertFalse(order.total_overridden)

    def test_empty_order_fails(self):
        with self.assertRaises(InvalidItem):
            Order.place(customer_id=None, customer_name="", customer_phone="", items=[])

    def test_comment_is_customer_visible(self):
        order = Order.place(
            customer_id=None,
            customer_name="Гость",
            customer_phone="",
            items=[OrderItem(product_id=1, name="Окно", unit_price=Decimal("10"), quantity=1)],
            comment="  Позвоните заранее ",
        )
        self.assertEqual(len(order.comments), 1)
        self.assertEqual(order.comments[0].text, "Позвоните заранее")
        self.assertEqual(order.comments[0].author, "Гость")
        self.assertFalse(order.comments[0].is_internal)

    def test_blank_comment_is_ignored(self):
        order = Order.place(
            customer_id=None,
            customer_name="Гость",
            customer_phone="",
            items=[OrderItem(product_id=1, name="Окно", unit_price=Decimal("10"), quantity=1)],
            comment="   ",
        )
        self.assertEqual(order.comments, [])


class AssignAssemblerTest(TestCase):

    def test_manager_assigns_assembler(self):
        order = make_order()
        previous = order.assign_assembler(ASSEMBLER.id, Role.ASSEMBLER, MANAGER)
        self.assertIsNone(previous)
        self.assertEqual(order.assembler_id, ASSEMBLER.id)
        self.assertEqual(order.acceptance_status, AcceptanceStatus.PENDING)

    def test_reassignment_resets_acceptance_and_date(self):
        order = make_order(
            assembler_id=ASSEMBLER.id,
            acceptance_status=AcceptanceStatus.REJECTED,
            estimated_completion_date=date(2025, 5, 5),
        )
        previous = order.assign_assembler(OTHER_ASSEMBLER.id, Role.ASSEMBLER, ADMIN)
        self.assertEqual(previous, ASSEMBLER.id)
        self.assertEqual(order.acceptance_status, AcceptanceStatus.PENDING)
        self.assertIsNone(order.estimated_completion_date)

    def test_non_staff_cannot_assign(self):
        for actor in (CLIENT, ASSEMBLER, GUEST):
            with self.assertRaises(Forbidden):
                make_order().assign_assembler(ASSEMBLER.id, Role.ASSEMBLER, actor)

    def test_terminal_order_cannot_be_reassigned(self):
        order = make_order(status=OrderStatus.COMPLETED)
        with self.assertRaises(InvalidState):
            order.assign_assembler(ASSEMBLER.id, Role.ASSEMBLER, MANAGER)

    def test_assignee_must_be_assembler(self):
        order = make_order()
        with self.assertRaises(InvalidAssignee):
            order.assign_assembler(CLIENT.id, Role.CLIENT, MANAGER)
        self.assertIsNone(order.assembler_id)

    def test_unknown_assignee(self):
        with self.assertRaises(NotFound):
            make_order().assign_assembler(999, None, MANAGER)


class AcceptanceTest(TestCase):

    def test_assigned_assembler_accepts(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        order.decide_acceptance(AcceptanceStatus.ACCEPTED, ASSEMBLER)
        self.assertEqual(order.acceptance_status, AcceptanceStatus.ACCEPTED)

    def test_rejection_keeps_assignment_and_status(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        order.decide_acceptance("Rejected", ASSEMBLER)
        self.assertEqual(order.acceptance_status, AcceptanceStatus.REJECTED)
        self.assertEqual(order.assembler_id, ASSEMBLER.id)
        self.assertEqual(order.status, OrderStatus.PENDING)

    def test_second_decision_fails(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        order.decide_acceptance(AcceptanceStatus.ACCEPTED, ASSEMBLER)
        with self.assertRaises(InvalidState):
            order.decide_acceptance(AcceptanceStatus.REJECTED, ASSEMBLER)

    def test_only_assigned_assembler_decides(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        for actor in (OTHER_ASSEMBLER, MANAGER, ADMIN, CLIENT):
            with self.assertRaises(Forbidden):
                order.decide_acceptance(AcceptanceStatus.ACCEPTED, actor)

    def test_replaced_assembler_is_forbidden(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        order.assign_assembler(OTHER_ASSEMBLER.id, Role.ASSEMBLER, MANAGER)
        with self.assertRaises(Forbidden):
            order.decide_acceptance(AcceptanceStatus.ACCEPTED, ASSEMBLER)
        order.decide_acceptance(AcceptanceStatus.ACCEPTED, OTHER_ASSEMBLER)

    def test_pending_is_not_a_decision(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        with self.assertRaises(InvalidInput):
            order.decide_acceptance(AcceptanceStatus.PENDING, ASSEMBLER)


class StatusTest(TestCase):

    def test_assembler_progresses_forward(self):
        order = accepted_order()
        self.assertEqual(order.change_status(OrderStatus.PROCESSING, ASSEMBLER), OrderStatus.PENDING)
        order.change_status(OrderStatus.COMPLETED, ASSEMBLER)
        self.assertEqual(order.status, OrderStatus.COMPLETED)

    def test_assembler_cannot_skip_or_go_back(self):
        order = accepted_order()
        with self.assertRaises(InvalidState):
            order.change_status(OrderStatus.COMPLETED, ASSEMBLER)
        order.change_status(OrderStatus.PROCESSING, ASSEMBLER)
        with self.assertRaises(InvalidState):
            order.change_status(OrderStatus.PENDING, ASSEMBLER)

    def test_assembler_needs_acceptance(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        with self.assertRaises(Forbidden):
            order.change_status(OrderStatus.PROCESSING, ASSEMBLER)

    def test_unassigned_assembler_is_forbidden(self):
        order = accepted_order(status=OrderStatus.PROCESSING)
        with self.assertRaises(Forbidden):
            order.change_status(OrderStatus.COMPLETED, OTHER_ASSEMBLER)

    def test_assembler_cannot_cancel(self):
        with self.assertRaises(Forbidden):
            accepted_order().change_status(OrderStatus.CANCELLED, ASSEMBLER)

    def test_staff_may_set_any_open_status(self):
        order = make_order(status=OrderStatus.PROCESSING)
        order.change_status(OrderStatus.PENDING, MANAGER)
        self.assertEqual(order.status, OrderStatus.PENDING)
        order.change_status(OrderStatus.CANCELLED, ADMIN)
        self.assertEqual(order.status, OrderStatus.CANCELLED)

    def test_terminal_order_is_frozen(self):
        for terminal in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
            order = accepted_order(status=terminal)
            for actor in (ADMIN, MANAGER, ASSEMBLER):
                with self.assertRaises(InvalidTransition):
                    order.change_status(OrderStatus.PROCESSING, actor)
            self.assertEqual(order.status, terminal)

    def test_customers_cannot_change_status(self):
        for actor in (CLIENT, GUEST):
            with self.assertRaises(Forbidden):
                make_order().change_status(OrderStatus.CANCELLED, actor)

    def test_unknown_status(self):
        with self.assertRaises(InvalidInput):
            make_order().change_status("Shipped", ADMIN)


class ItemQuantityTest(TestCase):

    def test_decrement_to_zero_removes_item(self):
        order = make_order()
        old, new = order.change_item_quantity(10, -2, MANAGER)
        self.assertEqual((old, new), (2, 0))
        self.assertEqual([item.id for item in order.items], [11])
        self.assertEqual(order.total_amount, Decimal("600.00"))

    def test_quantity_never_goes_negative(self):
        order = make_order()
        order.change_item_quantity(11, -5, ADMIN)
        self.assertEqual(len(order.items), 1)
        self.assertTrue(all(item.quantity > 0 for item in order.items))

    def test_increment_recomputes_total(self):
        order = accepted_order()
        order.change_item_quantity(11, 3, ASSEMBLER)
        self.assertEqual(order.total_amount, Decimal("13600.00"))

    def test_zero_delta_is_idempotent(self):
        order = make_order()
        order.change_item_quantity(10, 0, ADMIN)
        order.change_item_quantity(10, 0, ADMIN)
        self.assertEqual(order.total_amount, Decimal("11800.00"))
        self.assertEqual([item.quantity for item in order.items], [2, 1])

    def test_edit_discards_manual_total(self):
        order = make_order()
        order.override_total(Decimal("10000"), MANAGER)
        self.assertTrue(order.total_overridden)
        order.change_item_quantity(10, 0, MANAGER)
        self.assertEqual(order.total_amount, Decimal("11800.00"))
        self.assertFalse(order.total_overridden)

    def test_terminal_order_items_are_frozen(self):
        order = make_order(status=OrderStatus.CANCELLED)
        with self.assertRaises(InvalidState):
            order.change_item_quantity(10, 1, ADMIN)

    def test_unknown_item(self):
        with self.assertRaises(NotFound):
            make_order().change_item_quantity(99, 1, ADMIN)

    def test_permissions(self):
        for actor in (CLIENT, GUEST, OTHER_ASSEMBLER):
            with self.assertRaises(Forbidden):
                accepted_order().change_item_quantity(10, 1, actor)


class ManualTotalTest(TestCase):

    def test_staff_overrides_total_without_touching_items(self):
        order = make_order()
        previous = order.override_total("9999.90", ADMIN)
        self.assertEqual(previous, Decimal("11800.00"))
        self.assertEqual(order.total_amount, Decimal("9999.90"))
        self.assertEqual([item.quantity for item in order.items], [2, 1])

    def test_negative_total_fails(self):
        with self.assertRaises(InvalidInput):
            make_order().override_total(Decimal("-1"), MANAGER)

    def test_assembler_cannot_override(self):
        with self.assertRaises(Forbidden):
            accepted_order().override_total(Decimal("1"), ASSEMBLER)


class CompletionDateTest(TestCase):

    def test_assigned_assembler_sets_date(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        order.schedule_completion(date(2025, 5, 5), ASSEMBLER)
        self.assertEqual(order.estimated_completion_date, date(2025, 5, 5))
        order.schedule_completion(None, ASSEMBLER)
        self.assertIsNone(order.estimated_completion_date)

    def test_others_cannot_set_date(self):
        for actor in (MANAGER, OTHER_ASSEMBLER, CLIENT):
            with self.assertRaises(Forbidden):
                make_order(assembler_id=ASSEMBLER.id).schedule_completion(date(2025, 5, 5), actor)


class CommentTest(TestCase):

    def test_comments_append_in_order(self):
        order = make_order(assembler_id=ASSEMBLER.id)
        order.add_comment("Замер назначен", True, "Сборщик", ASSEMBLER)
        order.add_comment("Когда приедете?", False, "Иван", CLIENT)
        self.assertEqual([c.text for c in order.comments], ["Замер назначен", "Когда приедете?"])

    def test_client_cannot_post_internal(self):
        with self.assertRaises(Forbidden):
            make_order().add_comment("secret", True, "Иван", CLIENT)

    def test_client_does_not_see_internal(self):
        order = make_order()
        order.add_comment("Заказ проверен Админом.", True, "Админ", ADMIN)
        order.add_comment("Спасибо за заказ", False, "Админ", ADMIN)
        visible = order.comments_visible_to(CLIENT)
        self.assertEqual([c.text for c in visible], ["Спасибо за заказ"])
        self.assertEqual(len(order.comments_visible_to(MANAGER)), 2)

    def test_comments_allowed_on_terminal_order(self):
        order = make_order(status=OrderStatus.COMPLETED)
        order.add_comment("Гарантия 5 лет", False, "Менеджер", MANAGER)
        self.assertEqual(len(order.comments), 1)

    def test_outsiders_cannot_comment(self):
        stranger = Principal(id=42, role=Role.CLIENT)
        for actor in (GUEST, stranger, OTHER_ASSEMBLER):
            with self.assertRaises(Forbidden):
                make_order(assembler_id=ASSEMBLER.id).add_comment("hi", False, "x", actor)

    def test_blank_comment_fails(self):
        with self.assertRaises(InvalidInput):
            make_order().add_comment("   ", False, "Админ", ADMIN)


class AmountLimitTest(TestCase):
    """Tests for the money and quantity bounds of the order columns."""

    def test_line_over_limit_fails(self):
        with self.assertRaises(InvalidItem):
            OrderItem(product_id=1, name="Окно", unit_price=Decimal("5600.00"), quantity=2_000_000_000)

    def test_quantity_over_column_limit_fails(self):
        with self.assertRaises(InvalidItem):
            OrderItem(product_id=1, name="Болт", unit_price=Decimal("0.00"), quantity=2 ** 31)

    def test_order_total_over_limit_fails(self):
        """Test that lines within bounds cannot add up past the column limit."""
        with self.assertRaises(InvalidItem):
            Order.place(
                customer_id=None,
                customer_name="Гость",
                customer_phone="",
                items=[
                    OrderItem(product_id=1, name="Окно", unit_price=Decimal("6000000000.00"), quantity=1),
                    OrderItem(product_id=2, name="Дверь", unit_price=Decimal("6000000000.00"), quantity=1),
                ],
            )

    def test_quantity_growth_over_limit_leaves_order_untouched(self):
        order = make_order()
        with self.assertRaises(InvalidItem):
            order.change_item_quantity(10, 2_000_000_000, ADMIN)
        self.assertEqual([item.quantity for item in order.items], [2, 1])
        self.assertEqual(order.total_amount, Decimal("11800.00"))

    def test_manual_total_over_limit_fails(self):
        order = make_order()
        with self.assertRaises(InvalidInput):
            order.override_total(Decimal("100000000000"), MANAGER)
        self.assertEqual(order.total_amount, Decimal("11800.00"))
        self.assertFalse(order.total_overridden)

    def test_manual_total_with_sub_cent_precision_fails(self):
        order = make_order()
        with self.assertRaises(InvalidInput):
            order.override_total("10.005", MANAGER)
        self.assertEqual(order.total_amount, Decimal("11800.00"))

    def test_manual_total_is_stored_in_cents(self):
        order = make_order()
        order.override_total("10.5", MANAGER)
        self.assertEqual(str(order.total_amount), "10.50")
