import django.db.models.functions.text
import django.utils.timezone
import uuid
from django.db import migrations, models

import users.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                (
                    "is_superuser",
                    models.BooleanField(
                        default=False,
                        help_text="Designates that this user has all permissions without explicitly assigning them.",
                        verbose_name="superuser status",
                    ),
                ),
                (
                    "is_staff",
                    models.BooleanField(
                        default=False,
                        help_text="Designates whether the user can log into this admin site.",
                        verbose_name="staff status",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text=(
                            "Designates whether this user should be treated as active. "
                            "Unselect this instead of deleting accounts."
                        ),
                        verbose_name="active",
                    ),
                ),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100)),
                ("email", models.EmailField(max_length=254, unique=True, verbose_name="Email")),
                (
                    "role",
                    models.CharField(
                        choices=[("admin", "Administrator"), ("user", "Registrant")],
                        default="user",
                        max_length=10,
                    ),
                ),
                (
                    "profession",
                    models.CharField(
                        blank=True,
                        choices=[("PG", "PG"), ("Delegates", "Delegates")],
                        default="",
                        max_length=20,
                    ),
                ),
                ("city", models.CharField(blank=True, default="", max_length=100)),
                ("state", models.CharField(blank=True, default="", max_length=100)),
                ("designation", models.CharField(blank=True, default="", max_length=100)),
                ("phone", models.CharField(blank=True, default="", max_length=20)),
                ("medical_council_number", models.CharField(blank=True, default="", max_length=100)),
                ("profile_image", models.CharField(blank=True, default="", max_length=255)),
                (
                    "registration_number",
                    models.CharField(blank=True, editable=False, max_length=40, null=True, unique=True),
                ),
                ("registration_date", models.DateTimeField(blank=True, null=True)),
                ("payment_amount", models.PositiveIntegerField(default=0)),
                ("payment_reference", models.CharField(blank=True, default="", max_length=120)),
                ("payment_order_id", models.CharField(blank=True, default="", max_length=120)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("failed", "Failed"), ("free", "Free")],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("verification_token", models.CharField(blank=True, default="", max_length=64)),
                ("verification_image", models.CharField(blank=True, default="", max_length=255)),
                ("certificate_file", models.CharField(blank=True, default="", max_length=255)),
                ("certificate_image", models.CharField(blank=True, default="", max_length=255)),
                ("is_verified", models.BooleanField(default=False)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "groups",
                    models.ManyToManyField(
                        blank=True,
                        help_text=(
                            "The groups this user belongs to. A user will get all permissions "
                            "granted to each of their groups."
                        ),
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.group",
                        verbose_name="groups",
                    ),
                ),
                (
                    "user_permissions",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Specific permissions for this user.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.permission",
                        verbose_name="user permissions",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["role"], name="users_user_role_8d2f1c_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        django.db.models.functions.text.Lower("email"),
                        name="users_user_email_ci_unique",
                    )
                ],
            },
            managers=[
                ("objects", users.models.UserManager()),
            ],
        ),
    ]
