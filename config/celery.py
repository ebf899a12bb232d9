import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("venue_reservations")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Release pending reservations whose payment hold ran out - every minute
    "expire-pending-reservations": {
        "task": "reservations.expire_pending_reservations",
        "schedule": 60.0,
        "options": {"expires": 50},
    },
}

app.conf.timezone = "Asia/Almaty"
