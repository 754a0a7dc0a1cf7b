"""Celery configuration for the bulk job queue."""

from kombu import Exchange, Queue

# ==============================================================================
# BROKER & BACKEND CONFIGURATION
# ==============================================================================

broker_connection_retry_on_startup = True
broker_connection_retry = True
broker_connection_max_retries = 10

broker_pool_limit = 10
broker_heartbeat = 30

result_expires = 3600  # Results expire after 1 hour

# ==============================================================================
# TASK EXECUTION SETTINGS
# ==============================================================================

# ACK after the job finishes
task_acks_late = True
task_reject_on_worker_lost = True
# One job at a time per worker process
worker_prefetch_multiplier = 1

task_track_started = True
task_send_sent_event = True

task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Failed jobs are not retried automatically; clients queue a new job
task_max_retries = 0

# ==============================================================================
# QUEUE DEFINITIONS
# ==============================================================================

default_exchange = Exchange("default", type="direct", durable=True)
bulk_exchange = Exchange("bulk_jobs", type="direct", durable=True)

task_queues = (
    Queue(
        "default",
        exchange=default_exchange,
        routing_key="default",
        durable=True,
    ),
    Queue(
        "bulk_jobs_queue",
        exchange=bulk_exchange,
        routing_key="bulk.jobs",
        queue_arguments={
            "x-message-ttl": 7200000,  # 2 hours for long AI batches
            "x-dead-letter-exchange": "dlx",
            "x-dead-letter-routing-key": "bulk.failed",
        },
        durable=True,
    ),
    Queue(
        "failed_tasks",
        exchange=Exchange("dlx", type="direct", durable=True),
        routing_key="bulk.failed",
        durable=True,
        queue_arguments={
            "x-message-ttl": 604800000,  # Keep failed jobs for 7 days
        },
    ),
)

task_default_queue = "default"
task_default_exchange = "default"
task_default_routing_key = "default"

task_routes = {
    "run_bulk_job": {
        "queue": "bulk_jobs_queue",
        "routing_key": "bulk.jobs",
    },
}

# ==============================================================================
# WORKER CONFIGURATION
# ==============================================================================

worker_concurrency = 2
worker_max_tasks_per_child = 200
worker_send_task_events = True
worker_log_format = "[%(asctime)s: %(levelname)s/%(processName)s] %(message)s"
worker_task_log_format = "[%(asctime)s: %(levelname)s/%(processName)s][%(task_name)s(%(task_id)s)] %(message)s"

task_default_delivery_mode = 2  # persistent

task_annotations = {
    "run_bulk_job": {
        "time_limit": 3600,
        "soft_time_limit": 3300,
    },
}
