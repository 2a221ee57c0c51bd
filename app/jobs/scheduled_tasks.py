import threading
import time

import schedule
import structlog

from infrastructure.notifications.scheduler import DeliveryScheduler
from infrastructure.resilience import CircuitState, get_all_circuit_breaker_stats

logger = structlog.get_logger()


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            return job(*args, **kwargs)
        except Exception as e:
            logger.error(
                "scheduled_job_failed",
                job=getattr(job, "__name__", repr(job)),
                error=str(e),
                exc_info=True,
            )

    return wrapper


def init(delivery_scheduler: DeliveryScheduler, settings, job_scheduler=None):
    """Register the deferred delivery jobs.

    Args:
        delivery_scheduler: Scheduler holding deferred notifications
        settings: Settings instance; reads ``settings.scheduler``
        job_scheduler: ``schedule.Scheduler`` to register on (default: the
            module-level ``schedule`` jobs)
    """
    jobs = job_scheduler or schedule
    scheduler_settings = settings.scheduler

    logger.info(
        "scheduled_tasks_initialized",
        sweep_interval_seconds=scheduler_settings.sweep_interval_seconds,
        purge_interval_seconds=scheduler_settings.purge_interval_seconds,
    )

    jobs.every(scheduler_settings.sweep_interval_seconds).seconds.do(
        safe_run(delivery_scheduler.process_scheduled_notifications)
    )
    jobs.every(scheduler_settings.purge_interval_seconds).seconds.do(
        safe_run(delivery_scheduler.purge_expired)
    )
    jobs.every(5).minutes.do(safe_run(scheduler_heartbeat), delivery_scheduler)
    return jobs


def scheduler_heartbeat(delivery_scheduler: DeliveryScheduler):
    """Log scheduler counts and the state of every provider circuit breaker."""
    breakers = get_all_circuit_breaker_stats()
    logger.info(
        "scheduler_heartbeat",
        circuit_breakers={name: stats["state"] for name, stats in breakers.items()},
        **delivery_scheduler.get_scheduler_stats(),
    )
    for stats in breakers.values():
        if stats["state"] != CircuitState.CLOSED.value:
            logger.warning(
                "circuit_breaker_not_closed",
                circuit_breaker=stats["name"],
                state=stats["state"],
                failure_count=stats["failure_count"],
                last_failure_time=stats["last_failure_time"],
            )


def run_continuously(jobs=None, interval=1):
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Missed runs are not replayed:
    a job due every second with a one minute interval runs once
    per interval, not sixty times.
    """
    jobs = jobs or schedule
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        def run(self):
            while not cease_continuous_run.is_set():
                jobs.run_pending()
                time.sleep(interval)

    continuous_thread = ScheduleThread(name="delivery-scheduler", daemon=True)
    continuous_thread.start()
    return cease_continuous_run
