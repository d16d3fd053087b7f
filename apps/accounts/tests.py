import os
from io import StringIO
from unittest.mock import patch

from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.test import TestCase, RequestFactory, override_settings

from apps.accounts.models import User, Role
from apps.accounts.permissions import IsAdmin, IsStaffMember
from apps.outlets.models import Outlet


class UserModelTests(TestCase):

    def test_create_user_defaults(self):
        user = User.objects.create_user(username="sari")
        self.assertEqual(user.role, Role.OUTLET_MANAGER)
        self.assertFalse(user.has_usable_password())
        self.assertFalse(user.is_staff)
        self.assertEqual(user.display_name, "sari")

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(username="root", password="s3cret-pass")
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.check_password("s3cret-pass"))

    def test_username_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(username="")

    def test_outlet_membership(self):
        outlet = Outlet.objects.create(id="outlet_bonbin", name="Outlet Bonbin")
        kurir = User.objects.create_user(username="joko", full_name="Joko", role=Role.DELIVERYMAN, outlet=outlet)
        self.assertEqual(kurir.display_name, "Joko")
        self.assertEqual(list(outlet.members.all()), [kurir])


class PermissionTests(TestCase):

    def setUp(self):
        self.factory = RequestFactory()
        self.users = {
            role: User.objects.create_user(username=role.lower(), role=role)
            for role in Role.values
        }

    def allowed(self, permission, user):
        request = self.factory.get("/")
        request.user = user
        return permission().has_permission(request, None)

    def test_role_permissions(self):
        self.assertTrue(self.allowed(IsAdmin, self.users["ADMIN"]))
        self.assertFalse(self.allowed(IsAdmin, self.users["OUTLET_MANAGER"]))
        self.assertFalse(self.allowed(IsAdmin, self.users["DELIVERYMAN"]))

    def test_staff_member_and_anonymous(self):
        for user in self.users.values():
            self.assertTrue(self.allowed(IsStaffMember, user))
        for permission in (IsAdmin, IsStaffMember):
            self.assertFalse(self.allowed(permission, AnonymousUser()))


class CreateAdminCommandTests(TestCase):

    # The test runner forces DEBUG off, so the production lock is always active here
    @patch.dict(os.environ, {"ADMIN_USERNAME": "boss", "ADMIN_PASSWORD": "long-enough-pass",
                             "ALLOW_CREATE_ADMIN_IN_PROD": "True"})
    def test_creates_then_updates_admin(self):
        out = StringIO()
        call_command("create_admin", stdout=out)
        self.assertIn("Created admin: boss", out.getvalue())

        user = User.objects.get(username="boss")
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.is_superuser)

        call_command("create_admin", stdout=out)
        self.assertIn("Updated admin: boss", out.getvalue())
        self.assertEqual(User.objects.filter(username="boss").count(), 1)

    @patch.dict(os.environ, {"ALLOW_CREATE_ADMIN_IN_PROD": "True"}, clear=True)
    def test_missing_env(self):
        err = StringIO()
        call_command("create_admin", stderr=err)
        self.assertIn("Missing ADMIN_USERNAME", err.getvalue())
        self.assertFalse(User.objects.exists())

    @override_settings(DEBUG=False)
    @patch.dict(os.environ, {"ADMIN_USERNAME": "boss", "ADMIN_PASSWORD": "long-enough-pass"}, clear=True)
    def test_production_lock(self):
        err = StringIO()
        call_command("create_admin", stderr=err)
        self.assertIn("Production Lock", err.getvalue())
        self.assertFalse(User.objects.exists())
