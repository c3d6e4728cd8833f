"""
Add celery-beat schedules for the settlement workers.

- sweep_overdue_installments: every hour, marks installments past their
  grace period as overdue and refreshes plan summaries
- clear_pending_revenue: every 6 hours, moves revenue entries older than
  the clearance window from PENDING to PROCESSED
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Sweep Overdue Installments",
        "task": "payments.workers.installment_sweeper.sweep_overdue_installments",
        "every": 1,
        "period": "hours",
        "description": (
            "Marks pending installments past due date plus grace period as "
            "overdue and recomputes their plans (defaults after 3 missed)."
        ),
    },
    {
        "name": "Clear Pending Revenue",
        "task": "payments.workers.revenue_clearance.clear_pending_revenue",
        "every": 6,
        "period": "hours",
        "description": (
            "Moves revenue entries past the clearance window from pending to "
            "processed so teachers can withdraw them."
        ),
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for the settlement workers."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period=entry["period"],
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
