"""
Celery configuration — settings for the maintenance pipeline worker.

Loaded by `celery_app.config_from_object("celeryconfig")` in app/tasks/__init__.py.
Broker and result-backend URLs come from Settings (environment or
.env), defaulting to a local Redis.
"""

from app.core.config import settings

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = settings.CELERY_BROKER_URL
result_backend = settings.CELERY_RESULT_BACKEND

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

# A run writes to a session created by the API, so it is never redelivered
task_acks_late = False
worker_prefetch_multiplier = 1

# Five stages, each with a bounded reasoning call
task_soft_time_limit = 600    # 10 min: raises SoftTimeLimitExceeded
task_time_limit = 660         # 11 min: hard kill

# Summaries live in pipeline_sessions; the Celery result is only a receipt
result_expires = 3600

worker_max_tasks_per_child = 100

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
#   celery -A app.tasks worker -Q pipeline

task_routes = {
    "app.tasks.pipeline_tasks.*": {"queue": "pipeline"},
}

task_default_queue = "default"
