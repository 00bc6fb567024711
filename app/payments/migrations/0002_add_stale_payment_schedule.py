"""
Add celery-beat schedule for expiring stale payments.

Runs payments.tasks.expire_stale_payments every 15 minutes to fail
payments the provider never confirmed.
"""

from django.db import migrations

TASK_NAME = "Expire Stale Payments"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the stale payment sweep."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Create interval schedule: every 15 minutes
    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=15,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.tasks.expire_stale_payments",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Re-queries processing payments past PAYMENT_STALE_AFTER_MINUTES "
                "and fails those the provider still has not resolved."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
