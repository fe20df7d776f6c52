import uuid

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.db.models.functions import Lower


class PaymentFactImmutable(Exception):
    """A settled payment fact (paid/free) cannot be rewritten."""


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The email must be set")
        user = self.model(email=self.normalize_email(email), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def normalize_email(self, email):
        return (email or "").strip().lower()

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", User.ROLE_ADMIN)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    ROLE_ADMIN = "admin"
    ROLE_USER = "user"

    ROLES = (
        (ROLE_ADMIN, "Administrator"),
        (ROLE_USER, "Registrant"),
    )

    PROFESSION_PG = "PG"
    PROFESSION_DELEGATES = "Delegates"

    PROFESSIONS = (
        (PROFESSION_PG, "PG"),
        (PROFESSION_DELEGATES, "Delegates"),
    )

    PAYMENT_PENDING = "pending"
    PAYMENT_PAID = "paid"
    PAYMENT_FAILED = "failed"
    PAYMENT_FREE = "free"

    PAYMENT_STATUSES = (
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_FAILED, "Failed"),
        (PAYMENT_FREE, "Free"),
    )

    SETTLED_PAYMENT_STATUSES = {PAYMENT_PAID, PAYMENT_FREE}
    PAYMENT_FIELDS = ("payment_amount", "payment_reference", "payment_order_id", "payment_status")

    # Allocated by the issuance service before the QR code is rendered.
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    username = None
    first_name = None
    last_name = None

    name = models.CharField(max_length=100)
    email = models.EmailField(unique=True, verbose_name="Email")
    role = models.CharField(max_length=10, choices=ROLES, default=ROLE_USER)

    profession = models.CharField(max_length=20, choices=PROFESSIONS, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    state = models.CharField(max_length=100, blank=True, default="")
    designation = models.CharField(max_length=100, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    medical_council_number = models.CharField(max_length=100, blank=True, default="")
    profile_image = models.CharField(max_length=255, blank=True, default="")

    registration_number = models.CharField(max_length=40, unique=True, null=True, blank=True, editable=False)
    registration_date = models.DateTimeField(null=True, blank=True)

    payment_amount = models.PositiveIntegerField(default=0)
    payment_reference = models.CharField(max_length=120, blank=True, default="")
    payment_order_id = models.CharField(max_length=120, blank=True, default="")
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUSES, default=PAYMENT_PENDING)

    verification_token = models.CharField(max_length=64, blank=True, default="")
    verification_image = models.CharField(max_length=255, blank=True, default="")

    certificate_file = models.CharField(max_length=255, blank=True, default="")
    certificate_image = models.CharField(max_length=255, blank=True, default="")

    is_verified = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    objects = UserManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(Lower("email"), name="users_user_email_ci_unique"),
        ]
        indexes = [
            models.Index(fields=["role"], name="users_user_role_8d2f1c_idx"),
        ]

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_payment = {
            field: getattr(instance, field)
            for field in cls.PAYMENT_FIELDS
            if field in field_names
        }
        return instance

    def save(self, *args, **kwargs):
        self.email = User.objects.normalize_email(self.email)
        self._guard_payment_fact()
        super().save(*args, **kwargs)
        self._loaded_payment = {field: getattr(self, field) for field in self.PAYMENT_FIELDS}

    def _guard_payment_fact(self) -> None:
        loaded = getattr(self, "_loaded_payment", None)
        if not loaded or loaded.get("payment_status") not in self.SETTLED_PAYMENT_STATUSES:
            return
        changed = [field for field, value in loaded.items() if getattr(self, field) != value]
        if changed:
            raise PaymentFactImmutable(f"Payment fact is settled; cannot change {', '.join(changed)}")

    @property
    def has_certificate(self) -> bool:
        return bool(self.certificate_file) and bool(self.certificate_image)

    @property
    def first_name_slug(self) -> str:
        parts = (self.name or "").split()
        return parts[0].lower() if parts else "user"

    def __str__(self) -> str:
        return f"{self.email} ({self.get_role_display()})"
