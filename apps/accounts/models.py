import uuid
from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.utils import timezone
from .managers import UserManager


class Role(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    OUTLET_MANAGER = "OUTLET_MANAGER", "Outlet Manager"
    DELIVERYMAN = "DELIVERYMAN", "Deliveryman"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Staff identity. Customers never log in; they are identified per order
    by name + phone (see OrderService.confirm_receipt).

    Outlet managers and deliverymen belong to at most one outlet.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    username = models.CharField(max_length=150, unique=True, db_index=True)
    full_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True, null=True)

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.OUTLET_MANAGER, db_index=True)
    outlet = models.ForeignKey(
        "outlets.Outlet",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="members",
    )

    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'username'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'

    def __str__(self):
        return self.username

    @property
    def display_name(self):
        return self.full_name or self.username
