# apps/utils/tests.py
import json
import logging

from django.test import SimpleTestCase, TestCase
from rest_framework.exceptions import ValidationError

from .exceptions import BusinessLogicException, custom_exception_handler
from .logging import JSONFormatter
from .utils import digits_only, generate_order_id, normalize_text
from .validators import validate_phone


class ValidatorTests(SimpleTestCase):
    def test_phone_validator(self):
        self.assertEqual(validate_phone("+62 812-3456-7890"), "+62 812-3456-7890")
        self.assertEqual(validate_phone("081234567890"), "081234567890")
        with self.assertRaises(ValidationError):
            validate_phone("123")
        with self.assertRaises(ValidationError):
            validate_phone("0812abc4567")


class HelperTests(SimpleTestCase):
    def test_order_id_shape(self):
        first = generate_order_id()
        second = generate_order_id()
        prefix, millis, suffix = first.split("-")
        self.assertEqual(prefix, "ORD")
        self.assertTrue(millis.isdigit())
        self.assertEqual(len(suffix), 6)
        self.assertNotEqual(first, second)

    def test_digits_only(self):
        self.assertEqual(digits_only("+62 (812) 3456-7890"), "6281234567890")
        self.assertEqual(digits_only(None), "")

    def test_normalize_text(self):
        self.assertEqual(normalize_text("  Siap   DI ambil "), "siap di ambil")


class ExceptionHandlerTests(SimpleTestCase):
    def test_business_error_rendered_with_details(self):
        class Teapot(BusinessLogicException):
            default_code = "teapot"
            status_code = 418

        response = custom_exception_handler(
            Teapot("short and stout", details={"allowed": ["tea"]}), {}
        )
        self.assertEqual(response.status_code, 418)
        self.assertEqual(
            response.data,
            {"error": "short and stout", "code": "teapot", "allowed": ["tea"]},
        )

    def test_unknown_error_is_500(self):
        response = custom_exception_handler(RuntimeError("boom"), {})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "server_error")


class JSONFormatterTests(SimpleTestCase):
    def test_scrubs_sensitive_keys_and_lifts_context(self):
        record = logging.LogRecord(
            "apps.orders", logging.INFO, __file__, 1,
            {"customer_phone": "0812", "note": "ok"}, None, None,
        )
        record.order_id = "ORD-1"
        line = json.loads(JSONFormatter().format(record))
        self.assertIn("REDACTED", line["msg"])
        self.assertNotIn("0812", line["msg"])
        self.assertEqual(line["order_id"], "ORD-1")


class HealthCheckTests(TestCase):
    def test_health_ok(self):
        response = self.client.get("/api/v1/utils/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["components"]["db"], "ok")
