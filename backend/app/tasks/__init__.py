"""
Celery application factory.
"""

from celery import Celery

celery_app = Celery("maintenance")
celery_app.config_from_object("celeryconfig")

# Auto-discover tasks in these modules
celery_app.autodiscover_tasks([
    "app.tasks.pipeline_tasks",
])
