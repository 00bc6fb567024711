"""
Add celery-beat schedule for expiring finished listing terms.

Runs listings.tasks.expire_listing_terms every hour.
"""

from django.db import migrations

TASK_NAME = "Expire Listing Terms"


def create_periodic_task(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(every=1, period="hours")

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "listings.tasks.expire_listing_terms",
            "interval": schedule,
            "enabled": True,
            "description": "Marks listings whose paid term has ended as expired.",
        },
    )


def remove_periodic_task(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("listings", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
