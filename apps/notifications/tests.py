# apps/notifications/tests.py
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APITestCase

from apps.accounts.models import Role
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.outlets.models import Outlet
from .models import Notification, NotificationType
from .services import (
    Recipient,
    compute_recipients,
    fanout_status_change,
    inbox_for,
    render_status_message,
)
from .tasks import fanout_status_change_task

User = get_user_model()


def make_event(**overrides):
    event = {
        "order_id": "ORD-1-abcdef",
        "old_status": "dikemas",
        "new_status": "siap kirim",
        "actor_id": "admin-1",
        "actor_role": "ADMIN",
        "actor_outlet_id": None,
        "actor_name": "Admin",
        "outlet_id": "outlet_bonbin",
        "outlet_name": "Outlet Bonbin",
        "deliveryman_id": None,
    }
    event.update(overrides)
    return event


class RecipientRuleTests(TestCase):
    def setUp(self):
        self.outlet = Outlet.objects.create(id="outlet_bonbin", name="Outlet Bonbin")
        self.other = Outlet.objects.create(id="outlet_pogung", name="Outlet Pogung")
        self.manager = User.objects.create_user(username="mgr", role=Role.OUTLET_MANAGER, outlet=self.outlet)
        self.kurir = User.objects.create_user(username="kurir", role=Role.DELIVERYMAN, outlet=self.outlet)
        self.outsider = User.objects.create_user(username="kurir_luar", role=Role.DELIVERYMAN, outlet=self.other)
        # not outlet staff, or not active: never reached by a broadcast
        User.objects.create_user(username="boss", role=Role.ADMIN, outlet=self.outlet)
        User.objects.create_user(username="ex", role=Role.OUTLET_MANAGER, outlet=self.outlet, is_active=False)

    def ids(self, recipients):
        return [(r.user_id, r.outlet_id) for r in recipients]

    def test_every_active_member_when_actor_outside_outlet(self):
        self.assertEqual(
            self.ids(compute_recipients(make_event())),
            [(str(self.kurir.id), "outlet_bonbin"), (str(self.manager.id), "outlet_bonbin")],
        )

    def test_outlet_member_not_notified_of_own_change(self):
        event = make_event(actor_id=str(self.manager.id), actor_role="OUTLET_MANAGER",
                           actor_outlet_id="outlet_bonbin", deliveryman_id=str(self.outsider.id))
        self.assertEqual(compute_recipients(event), [Recipient(user_id=str(self.outsider.id))])

    def test_deliveryman_not_notified_of_own_change(self):
        event = make_event(actor_id=str(self.outsider.id), actor_role="DELIVERYMAN",
                           actor_outlet_id="outlet_pogung", deliveryman_id=str(self.outsider.id))
        recipients = compute_recipients(event)
        self.assertNotIn(str(self.outsider.id), [r.user_id for r in recipients])
        self.assertEqual(len(recipients), 2)

    def test_member_deliveryman_reached_once(self):
        event = make_event(deliveryman_id=str(self.kurir.id))
        self.assertEqual(
            self.ids(compute_recipients(event)),
            [(str(self.kurir.id), None), (str(self.manager.id), "outlet_bonbin")],
        )

    def test_customer_change_reaches_outlet_and_deliveryman(self):
        event = make_event(actor_id=None, actor_role="CUSTOMER", deliveryman_id=str(self.outsider.id))
        recipients = compute_recipients(event)
        self.assertEqual(len(recipients), 3)
        self.assertFalse(recipients[0].is_broadcast)
        self.assertTrue(all(r.is_broadcast for r in recipients[1:]))

    def test_no_outlet_no_deliveryman(self):
        self.assertEqual(compute_recipients(make_event(outlet_id=None)), [])


class MessageTemplateTests(SimpleTestCase):
    def test_titles(self):
        cases = {
            "dalam pengiriman": "Order In Transit",
            "diterima": "Order Delivered",
            "siap kirim": "Order Ready",
            "siap di ambil": "Order Ready",
            "dikemas": "Order Status Updated",
        }
        for status, title in cases.items():
            self.assertEqual(render_status_message(make_event(new_status=status))[0], title, status)

    def test_body_names_actor_and_transition(self):
        _, body = render_status_message(make_event(actor_role="OUTLET_MANAGER"))
        self.assertIn("Order #ORD-1-abcdef", body)
        self.assertIn("Updated by Outlet Bonbin", body)
        self.assertIn("dikemas → siap kirim", body)

        _, body = render_status_message(make_event(actor_role="DELIVERYMAN", new_status="dalam pengiriman"))
        self.assertIn("Updated by Delivery personnel", body)

        _, body = render_status_message(make_event(actor_role="CUSTOMER", new_status="diterima"))
        self.assertIn("Confirmed by customer", body)


class FanoutTests(TestCase):
    def setUp(self):
        self.outlet = Outlet.objects.create(id="outlet_bonbin", name="Outlet Bonbin", location_alias="bonbin")
        self.manager = User.objects.create_user(username="mgr", role=Role.OUTLET_MANAGER, outlet=self.outlet)
        self.deliveryman = User.objects.create_user(username="kurir", role=Role.DELIVERYMAN)
        self.order = Order.objects.create(
            id="ORD-1-abcdef",
            customer_name="Budi",
            customer_phone="081234567890",
            outlet=self.outlet,
            assigned_deliveryman=self.deliveryman,
        )

    def test_one_row_per_recipient(self):
        created = fanout_status_change(make_event(deliveryman_id=str(self.deliveryman.id)))

        self.assertEqual(len(created), 2)
        member_row = Notification.objects.get(user=self.manager)
        direct = Notification.objects.get(user=self.deliveryman)
        self.assertEqual(member_row.outlet, self.outlet)
        self.assertIsNone(direct.outlet)
        for notification in (member_row, direct):
            self.assertEqual(notification.type, NotificationType.ORDER_STATUS_UPDATE)
            self.assertEqual(notification.order, self.order)
            self.assertEqual(notification.data["new_status"], "siap kirim")

    def test_failed_insert_is_logged_and_skipped(self):
        original = Notification.objects.create

        def flaky(**kwargs):
            if kwargs.get("outlet_id"):
                raise DatabaseError("boom")
            return original(**kwargs)

        with mock.patch.object(Notification.objects, "create", side_effect=flaky):
            with self.assertLogs("apps.notifications.services", level="ERROR"):
                created = fanout_status_change(make_event(deliveryman_id=str(self.deliveryman.id)))

        self.assertEqual(len(created), 1)
        self.assertEqual(created[0].user, self.deliveryman)

    def test_task_swallows_and_logs_failures(self):
        with mock.patch("apps.notifications.tasks.fanout_status_change", side_effect=RuntimeError("down")):
            with self.assertLogs("apps.notifications.tasks", level="ERROR"):
                self.assertEqual(fanout_status_change_task(make_event()), 0)

    def test_every_row_has_an_owner(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Notification.objects.create(outlet=self.outlet, body="nobody")


class InboxApiTests(APITestCase):
    def setUp(self):
        self.outlet = Outlet.objects.create(id="outlet_bonbin", name="Outlet Bonbin")
        self.manager = User.objects.create_user(username="mgr", role=Role.OUTLET_MANAGER, outlet=self.outlet)
        self.colleague = User.objects.create_user(username="mgr2", role=Role.OUTLET_MANAGER, outlet=self.outlet)
        self.deliveryman = User.objects.create_user(username="kurir", role=Role.DELIVERYMAN)

        self.member_row = Notification.objects.create(user=self.manager, outlet=self.outlet, title="Order Ready", body="b")
        self.direct = Notification.objects.create(user=self.manager, title="Hi", body="d")
        self.colleague_row = Notification.objects.create(
            user=self.colleague, outlet=self.outlet, title="Order Ready", body="b"
        )
        self.theirs = Notification.objects.create(user=self.deliveryman, title="Kurir", body="k")

        self.client.force_authenticate(user=self.manager)

    def test_inbox_contains_only_own_rows(self):
        ids = set(inbox_for(self.manager).values_list("id", flat=True))
        self.assertEqual(ids, {self.member_row.id, self.direct.id})

    def test_list_and_unread_filter(self):
        response = self.client.get("/api/v1/notifications/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)

        self.direct.mark_read()
        response = self.client.get("/api/v1/notifications/", {"unread": "true"})
        self.assertEqual(response.data["count"], 1)
        self.assertTrue(response.data["results"][0]["is_broadcast"])

    def test_mark_one_read(self):
        response = self.client.post(f"/api/v1/notifications/{self.member_row.id}/read/")
        self.assertEqual(response.status_code, 200)
        self.member_row.refresh_from_db()
        self.assertTrue(self.member_row.is_read)
        self.assertIsNotNone(self.member_row.read_at)

        self.colleague_row.refresh_from_db()
        self.assertFalse(self.colleague_row.is_read)

    def test_cannot_read_someone_elses(self):
        response = self.client.post(f"/api/v1/notifications/{self.theirs.id}/read/")
        self.assertEqual(response.status_code, 404)
        response = self.client.post(f"/api/v1/notifications/{self.colleague_row.id}/read/")
        self.assertEqual(response.status_code, 404)

    def test_mark_all_read(self):
        response = self.client.post("/api/v1/notifications/read-all/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["updated"], 2)
        for other in (self.theirs, self.colleague_row):
            other.refresh_from_db()
            self.assertFalse(other.is_read)

    def test_requires_login(self):
        self.client.force_authenticate(user=None)
        response = self.client.get("/api/v1/notifications/")
        self.assertEqual(response.status_code, 401)


class OutletReadFlagTests(APITestCase):
    """Members of one outlet read their copy of a status change independently."""

    def setUp(self):
        self.outlet = Outlet.objects.create(id="outlet_bonbin", name="Outlet Bonbin")
        self.admin = User.objects.create_user(username="admin", role=Role.ADMIN)
        self.manager = User.objects.create_user(username="mgr", role=Role.OUTLET_MANAGER, outlet=self.outlet)
        self.colleague = User.objects.create_user(username="mgr2", role=Role.OUTLET_MANAGER, outlet=self.outlet)
        self.order = Order.objects.create(
            id="ORD-1-abcdef", customer_name="Budi", customer_phone="081234567890",
            shipping_status="dikemas", outlet=self.outlet,
        )

    def test_read_all_leaves_colleague_unread(self):
        with self.captureOnCommitCallbacks(execute=True):
            OrderService.apply_status_transition(self.order.id, "siap kirim", actor=self.admin)

        self.assertEqual(inbox_for(self.manager).count(), 1)
        self.assertEqual(inbox_for(self.colleague).count(), 1)

        self.client.force_authenticate(user=self.manager)
        response = self.client.post("/api/v1/notifications/read-all/")
        self.assertEqual(response.data["updated"], 1)

        self.assertFalse(inbox_for(self.manager).filter(is_read=False).exists())
        self.assertEqual(inbox_for(self.colleague).filter(is_read=False).count(), 1)
