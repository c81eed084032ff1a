import django.core.validators
import django.db.models.deletion
from django.db import migrations, models

ELECTION_TYPE_CHOICES = [
    ("TRUSTEES", "Trust Mandal"),
    ("YUVA_PANKH", "Yuva Pankh Samiti"),
    ("KAROBARI_MEMBERS", "Karobari Samiti"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Election",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=ELECTION_TYPE_CHOICES, max_length=32)),
                ("title", models.CharField(max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[("UPCOMING", "Upcoming"), ("ACTIVE", "Active"), ("COMPLETED", "Completed")],
                        default="UPCOMING",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("-created_at", "id"),
                "permissions": [("view_results", "Can view election results and winners")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "ACTIVE")),
                        fields=("type",),
                        name="uniq_election_active_per_type",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Zone",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("election_type", models.CharField(choices=ELECTION_TYPE_CHOICES, max_length=32)),
                (
                    "seats",
                    models.PositiveSmallIntegerField(
                        default=1,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ("election_type", "code", "id"),
                "constraints": [
                    models.UniqueConstraint(fields=("election_type", "code"), name="uniq_zone_type_code")
                ],
            },
        ),
        migrations.CreateModel(
            name="Voter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("voter_id", models.CharField(max_length=64, unique=True, verbose_name="VID")),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("has_voted", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("voter_id",),
            },
        ),
        migrations.CreateModel(
            name="Candidate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("election_type", models.CharField(choices=ELECTION_TYPE_CHOICES, max_length=32)),
                ("name", models.CharField(max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("APPROVED", "Approved"),
                            ("REJECTED", "Rejected"),
                            ("WITHDRAWN", "Withdrawn"),
                        ],
                        default="PENDING",
                        max_length=16,
                    ),
                ),
                ("is_nota", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "zone",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="candidates",
                        to="elections.zone",
                    ),
                ),
            ],
            options={
                "ordering": ("zone", "name", "id"),
                "indexes": [models.Index(fields=["election_type", "status"], name="cand_type_status")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_nota", True)),
                        fields=("zone",),
                        name="uniq_candidate_nota_per_zone",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="VoterZoneAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("election_type", models.CharField(choices=ELECTION_TYPE_CHOICES, max_length=32)),
                (
                    "voter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="zone_assignments",
                        to="elections.voter",
                    ),
                ),
                (
                    "zone",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="voter_assignments",
                        to="elections.zone",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("voter", "election_type"), name="uniq_voter_zone_per_type")
                ],
            },
        ),
        migrations.CreateModel(
            name="OfflineVote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("voter_vid", models.CharField(db_index=True, max_length=64, verbose_name="VID")),
                ("timestamp", models.DateTimeField()),
                ("entered_by", models.CharField(max_length=255)),
                ("is_merged", models.BooleanField(default=False)),
                ("merged_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "candidate",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="offline_votes",
                        to="elections.candidate",
                    ),
                ),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="offline_votes",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "ordering": ("timestamp", "id"),
                "permissions": [("merge_offlinevote", "Can merge offline votes into the vote ledger")],
                "indexes": [
                    models.Index(fields=["election", "is_merged"], name="offline_el_merged"),
                    models.Index(fields=["election", "voter_vid"], name="offline_el_vid"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Vote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField()),
                (
                    "source",
                    models.CharField(
                        choices=[("online", "Online"), ("offline", "Offline")],
                        default="online",
                        max_length=16,
                    ),
                ),
                ("source_meta", models.JSONField(blank=True, default=dict)),
                (
                    "candidate",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="elections.candidate",
                    ),
                ),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="elections.election",
                    ),
                ),
                (
                    "offline_vote",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="ledger_vote",
                        to="elections.offlinevote",
                    ),
                ),
                (
                    "voter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="elections.voter",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["election", "candidate"], name="vote_el_cand"),
                    models.Index(fields=["voter", "election"], name="vote_voter_el"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("voter", "election", "candidate"),
                        name="uniq_vote_voter_election_candidate",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("event_type", models.CharField(max_length=64)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("is_public", models.BooleanField(default=False)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_log",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Audit log entries",
                "ordering": ("timestamp", "id"),
                "indexes": [models.Index(fields=["election", "timestamp"], name="audit_el_ts")],
            },
        ),
    ]
