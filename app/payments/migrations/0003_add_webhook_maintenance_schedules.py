"""
Add celery-beat schedules for webhook maintenance.

- Retry failed webhook events every 5 minutes
- Reset webhook events stuck in PROCESSING every 15 minutes
- Delete old processed webhook events daily
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Retry Failed Stripe Webhooks",
        "task": "payments.tasks.retry_failed_webhooks",
        "every": 5,
        "period": "minutes",
        "description": "Re-queues FAILED webhook events below the retry ceiling.",
    },
    {
        "name": "Reset Stuck Stripe Webhooks",
        "task": "payments.tasks.cleanup_stuck_webhooks",
        "every": 15,
        "period": "minutes",
        "description": "Marks webhook events stuck in PROCESSING as FAILED.",
    },
    {
        "name": "Delete Old Stripe Webhooks",
        "task": "payments.tasks.cleanup_old_webhooks",
        "every": 1,
        "period": "days",
        "description": "Deletes processed webhook events past the retention window.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for webhook maintenance."""
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
        ("payments", "0002_seed_catalog"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
