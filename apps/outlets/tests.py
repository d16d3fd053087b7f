# apps/outlets/tests.py
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APITestCase

from apps.accounts.models import Role
from apps.orders.models import Order
from .models import Outlet
from .services import OutletService
from .utils.outlet_resolver import DEFAULT_KEYWORD_SYNONYMS, get_keyword_synonyms, matches_outlet, resolve_outlet

User = get_user_model()


OUTLETS = [
    Outlet(id="outlet_bonbin", name="Outlet Bonbin", location_alias="bonbin"),
    Outlet(id="outlet_malioboro", name="Outlet Malioboro", location_alias="malioboro"),
    Outlet(id="outlet_pogung", name="Pogung", location_alias=""),
]


class ResolverTests(SimpleTestCase):
    def test_explicit_id_is_authoritative(self):
        self.assertEqual(
            resolve_outlet(OUTLETS, outlet_id="outlet_x", shipping_location="Outlet Bonbin"),
            "outlet_x",
        )

    def test_exact_name_beats_substring(self):
        # "pogung" (exact name) would lose to bonbin's alias on a substring pass
        self.assertEqual(
            resolve_outlet(OUTLETS, shipping_location="dekat bonbin", pickup_location=" POGUNG "),
            "outlet_pogung",
        )

    def test_alias_substring(self):
        self.assertEqual(resolve_outlet(OUTLETS, pickup_location="Jl. Malioboro no. 5"), "outlet_malioboro")

    def test_keyword_synonyms(self):
        self.assertEqual(resolve_outlet(OUTLETS, shipping_location="sebelah kebun binatang"), "outlet_bonbin")
        self.assertEqual(resolve_outlet(OUTLETS, shipping_area="Monjali"), "outlet_malioboro")

    def test_synonyms_for_unknown_outlets_ignored(self):
        self.assertIsNone(resolve_outlet(OUTLETS, shipping_location="Jalan Wates km 3"))

    def test_custom_keywords(self):
        keywords = {"outlet_pogung": ["ugm"]}
        self.assertEqual(resolve_outlet(OUTLETS, shipping_location="Kampus UGM", keywords=keywords), "outlet_pogung")

    def test_nothing_matches(self):
        self.assertIsNone(resolve_outlet(OUTLETS, shipping_location="Surabaya"))
        self.assertIsNone(resolve_outlet(OUTLETS))

    def test_declaration_order_breaks_ties(self):
        self.assertEqual(
            resolve_outlet(OUTLETS, shipping_location="bonbin atau malioboro"),
            "outlet_bonbin",
        )

    def test_matches_outlet(self):
        self.assertTrue(matches_outlet(OUTLETS[0], None, "  outlet   BONBIN "))
        self.assertFalse(matches_outlet(OUTLETS[0], "Pogung"))

    @override_settings(OUTLET_KEYWORD_SYNONYMS={"outlet_pogung": ["mlati"]})
    def test_keywords_from_settings(self):
        self.assertEqual(get_keyword_synonyms(), {"outlet_pogung": ["mlati"]})

    @override_settings(OUTLET_KEYWORD_SYNONYMS=None)
    def test_default_keywords(self):
        self.assertIs(get_keyword_synonyms(), DEFAULT_KEYWORD_SYNONYMS)


class BackfillTests(TestCase):
    def setUp(self):
        self.bonbin = Outlet.objects.create(id="outlet_bonbin", name="Outlet Bonbin", location_alias="bonbin")
        self.pogung = Outlet.objects.create(id="outlet_pogung", name="Outlet Pogung", location_alias="pogung")
        Outlet.objects.create(id="outlet_closed", name="Outlet Closed", location_alias="closed", is_active=False)

        self.match = self.make_order("ORD-1-aaaaaa", shipping_location="Pogung Lor")
        self.miss = self.make_order("ORD-2-bbbbbb", shipping_location="Surabaya")
        self.closed = self.make_order("ORD-3-cccccc", shipping_location="closed outlet street")
        self.assigned = self.make_order("ORD-4-dddddd", shipping_location="Pogung", outlet=self.bonbin)

    def make_order(self, order_id, **fields):
        return Order.objects.create(
            id=order_id, customer_name="Budi", customer_phone="081234567890",
            shipping_status="dikemas", **fields
        )

    def test_backfill_assigns_only_unassigned_orders(self):
        result = OutletService.backfill_outlets(limit=10)

        self.assertEqual(result["total_processed"], 3)
        self.assertEqual(result["assigned"], 1)
        self.assertEqual(result["skipped"], 2)
        self.assertEqual(result["assignments"], [{"order_id": "ORD-1-aaaaaa", "outlet_id": "outlet_pogung"}])

        self.match.refresh_from_db()
        self.assertEqual(self.match.outlet, self.pogung)
        self.assertEqual(self.match.outlet_name, "Outlet Pogung")
        self.assertEqual(self.match.shipping_status, "dikemas")

        self.assigned.refresh_from_db()
        self.assertEqual(self.assigned.outlet, self.bonbin)

    def test_limit(self):
        result = OutletService.backfill_outlets(limit=1)
        self.assertEqual(result["total_processed"], 1)

    def test_match_by_name_for_legacy_order(self):
        legacy = self.make_order("ORD-5-eeeeee", outlet_name="eks outlet bonbin")
        self.assertEqual(OutletService.match_by_name(legacy), self.bonbin)
        self.assertIsNone(OutletService.match_by_name(self.miss))

    def test_management_command(self):
        out = StringIO()
        call_command("backfill_outlets", "--limit", "5", stdout=out)
        self.assertIn("ORD-1-aaaaaa -> outlet_pogung", out.getvalue())
        self.assertIn("assigned 1", out.getvalue())


class OutletApiTests(APITestCase):
    def setUp(self):
        self.outlet = Outlet.objects.create(id="outlet_bonbin", name="Outlet Bonbin", location_alias="bonbin")
        Outlet.objects.create(id="outlet_old", name="Old", is_active=False)
        self.admin = User.objects.create_user(username="admin", role=Role.ADMIN)
        self.manager = User.objects.create_user(username="mgr", role=Role.OUTLET_MANAGER, outlet=self.outlet)
        Order.objects.create(
            id="ORD-1-aaaaaa", customer_name="Budi", customer_phone="081234567890",
            pickup_location="Outlet Bonbin",
        )

    def test_list_active_outlets(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.get("/api/v1/outlets/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([o["id"] for o in response.data], ["outlet_bonbin"])

    def test_backfill_is_admin_only(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.post("/api/v1/outlets/backfill/", {}, format="json")
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(user=self.admin)
        response = self.client.post("/api/v1/outlets/backfill/", {"limit": 10}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["assigned"], 1)

    def test_outlet_orders_scoped_to_members(self):
        other = Outlet.objects.create(id="outlet_pogung", name="Outlet Pogung")
        outsider = User.objects.create_user(username="mgr_pogung", role=Role.OUTLET_MANAGER, outlet=other)
        Order.objects.create(
            id="ORD-2-bbbbbb", customer_name="Rina", customer_phone="081111111111", outlet=self.outlet,
        )

        self.client.force_authenticate(user=self.manager)
        response = self.client.get("/api/v1/outlets/outlet_bonbin/orders/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([o["id"] for o in response.data["results"]], ["ORD-2-bbbbbb"])

        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/v1/outlets/outlet_bonbin/orders/")
        self.assertEqual(response.data["count"], 1)

        self.client.force_authenticate(user=outsider)
        response = self.client.get("/api/v1/outlets/outlet_bonbin/orders/")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["code"], "forbidden")
