from rest_framework import status
from rest_framework.test import APITestCase

from apps.notifications.models import Notification
from apps.orders.models import Order, OrderAuditEntry
from apps.orders.status import ShippingStatus
from apps.orders.tests import FulfillmentFixtureMixin


class OrderApiFlowTests(FulfillmentFixtureMixin, APITestCase):

    def status_url(self, order=None):
        return f"/api/v1/orders/{(order or self.order).id}/status/"

    def patch_status(self, payload, user):
        self.client.force_authenticate(user=user)
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.patch(self.status_url(), payload, format="json")

    def test_status_update_flow(self):
        response = self.patch_status({"status": "Siap Kirim", "note": "packed"}, self.admin)

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["old_status"], "dikemas")
        self.assertEqual(response.data["new_status"], "siap kirim")
        self.assertEqual(response.data["order"]["shipping_status"], "siap kirim")
        self.assertEqual(response.data["order"]["branch"], "delivery")

        entry = OrderAuditEntry.objects.get(order=self.order)
        self.assertEqual(entry.note, "packed")
        self.assertEqual(
            set(Notification.objects.filter(outlet=self.outlet_a).values_list("user", flat=True)),
            {self.manager_a.id, self.deliveryman.id},
        )

    def test_invalid_status_lists_allowed_values(self):
        response = self.patch_status({"status": "lost"}, self.admin)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_status")
        self.assertIn("diterima", response.data["allowed_values"])

    def test_same_status_rejected(self):
        response = self.patch_status({"status": "dikemas"}, self.admin)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "status_unchanged")

    def test_other_outlet_forbidden(self):
        response = self.patch_status({"status": "siap kirim"}, self.manager_b)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "forbidden")

    def test_pickup_with_deliveryman_rejected(self):
        response = self.patch_status(
            {"status": "siap di ambil", "deliveryman_id": str(self.deliveryman.id)}, self.admin
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_assignment")

    def test_pickup_metadata_override(self):
        response = self.patch_status(
            {"status": "sudah diambil", "pickup_date": "2024-05-01", "pickup_time": "09:15:00",
             "picked_up_by": "Kasir Depan"},
            self.manager_a,
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        order = response.data["order"]
        self.assertEqual(order["pickup_date"], "2024-05-01")
        self.assertEqual(order["pickup_time"], "09:15:00")
        self.assertEqual(order["picked_up_by"], "Kasir Depan")
        self.assertIsNone(order["tracking_number"])

    def test_unauthenticated_cannot_update(self):
        response = self.client.patch(self.status_url(), {"status": "siap kirim"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_is_scoped(self):
        self.make_order(outlet=self.outlet_b, outlet_name=self.outlet_b.name)

        self.client.force_authenticate(user=self.manager_b)
        response = self.client.get("/api/v1/orders/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["outlet_id"], self.outlet_b.id)

        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/v1/orders/", {"shipping_status": "dikemas", "outlet": self.outlet_a.id})
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["id"], self.order.id)

    def test_retrieve_and_audit(self):
        self.patch_status({"status": "siap kirim"}, self.admin)

        self.client.force_authenticate(user=self.manager_a)
        response = self.client.get(f"/api/v1/orders/{self.order.id}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["outlet_display_name"], "Outlet Bonbin")

        response = self.client.get(f"/api/v1/orders/{self.order.id}/audit/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["actor_name"], "Admin Satu")
        self.assertEqual(response.data[0]["new_value"], "siap kirim")

        self.client.force_authenticate(user=self.manager_b)
        response = self.client.get(f"/api/v1/orders/{self.order.id}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_retrieve_missing(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/v1/orders/ORD-0-nothere/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "order_not_found")

    def test_admin_creates_and_deletes(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post("/api/v1/orders/", {
            "customer_name": "Rina",
            "customer_phone": "0811-1111-1111",
            "total_amount": "25000.00",
            "shipping_location": "Pogung Kidul",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["shipping_status"], "menunggu diproses")
        self.assertEqual(response.data["outlet_id"], self.outlet_b.id)

        response = self.client.delete(f"/api/v1/orders/{response.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_create_rejects_bad_phone(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post("/api/v1/orders/", {
            "customer_name": "Rina",
            "customer_phone": "12ab",
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_cannot_create_or_delete(self):
        self.client.force_authenticate(user=self.manager_a)
        response = self.client.post("/api/v1/orders/", {"customer_name": "X", "customer_phone": "081111111111"})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.delete(f"/api/v1/orders/{self.order.id}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Order.objects.filter(id=self.order.id).exists())

    def test_status_choices(self):
        self.client.force_authenticate(user=self.deliveryman)
        response = self.client.get("/api/v1/orders/statuses/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 7)
        self.assertIn({"value": "siap di ambil", "branch": "pickup"}, response.data)


    def test_assignment_options_for_admin(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/v1/orders/assignment-options/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([o["id"] for o in response.data["outlets"]], [self.outlet_a.id, self.outlet_b.id])
        self.assertEqual(
            [(d["username"], d["outlet_id"]) for d in response.data["deliverymen"]],
            [("kurir_a", self.outlet_a.id), ("kurir_b", self.outlet_b.id)],
        )
        self.assertEqual(response.data["deliverymen"][0]["outlet_name"], "Outlet Bonbin")

    def test_assignment_options_scoped_for_manager(self):
        self.client.force_authenticate(user=self.manager_a)
        response = self.client.get("/api/v1/orders/assignment-options/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["outlets"], [])
        self.assertEqual([d["id"] for d in response.data["deliverymen"]], [str(self.deliveryman.id)])

        # the listed deliveryman is one the manager may actually assign
        result = self.patch_status({"status": "siap kirim", "deliveryman_id": response.data["deliverymen"][0]["id"]},
                                   self.manager_a)
        self.assertEqual(result.status_code, status.HTTP_200_OK, result.data)

    def test_assignment_options_empty_for_deliveryman(self):
        self.client.force_authenticate(user=self.deliveryman)
        response = self.client.get("/api/v1/orders/assignment-options/")
        self.assertEqual(response.data, {"outlets": [], "deliverymen": []})

    def test_assignment_options_requires_login(self):
        response = self.client.get("/api/v1/orders/assignment-options/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

class ConfirmReceiptApiTests(FulfillmentFixtureMixin, APITestCase):

    def setUp(self):
        super().setUp()
        self.order.shipping_status = ShippingStatus.IN_TRANSIT
        self.order.save()
        self.url = f"/api/v1/orders/{self.order.id}/received/"

    def post(self, **payload):
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.post(self.url, payload, format="json")

    def test_customer_confirms_without_login(self):
        response = self.post(customer_name="budi santoso", customer_phone="+0812 3456 7890")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["shipping_status"], "diterima")
        self.order.refresh_from_db()
        self.assertEqual(self.order.shipping_status, "diterima")
        self.assertIsNone(self.order.pickup_outlet)

    def test_mismatch_is_forbidden(self):
        response = self.post(customer_name="Budi Santoso", customer_phone="0899")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "verification_failed")

    def test_terminal_is_conflict(self):
        self.order.shipping_status = ShippingStatus.RECEIVED
        self.order.save()

        response = self.post(customer_name="Budi Santoso", customer_phone="081234567890")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "already_terminal")

    def test_missing_fields(self):
        response = self.post(customer_name="Budi Santoso")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
