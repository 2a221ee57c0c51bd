import signal
import threading

from dotenv import load_dotenv

# Settings are built on import, so .env has to be loaded first.
load_dotenv()

from infrastructure.configuration import settings  # noqa: E402
from infrastructure.logging import get_module_logger  # noqa: E402
from infrastructure.notifications import NotificationService  # noqa: E402
from jobs import scheduled_tasks  # noqa: E402

logger = get_module_logger()


def main(stop_event=None):
    """Start the notification service and its scheduler loop.

    Blocks until ``stop_event`` is set (SIGINT/SIGTERM when run as a script).
    """
    logger.info("application_startup")
    list_configs()

    stop_event = stop_event or threading.Event()
    service = NotificationService(settings)

    stop_run_continuously = None
    if settings.scheduler.enabled:
        jobs = scheduled_tasks.init(service.scheduler, settings)
        stop_run_continuously = scheduled_tasks.run_continuously(
            jobs, interval=settings.scheduler.loop_interval_seconds
        )

    try:
        stop_event.wait()
    finally:
        if stop_run_continuously is not None:
            stop_run_continuously.set()
        service.shutdown()
        logger.info("application_shutdown")
    return service


def list_configs():
    """List all configuration settings keys"""
    config_settings = {"settings": []}

    for key, value in settings.model_dump().items():
        if isinstance(value, dict):
            config_settings[key] = list(value.keys())
        else:
            config_settings["settings"].append({key: value})

    logger.info("configuration_initialized", base_settings=config_settings["settings"])
    for key, value in config_settings.items():
        if key != "settings":
            logger.info("configuration_loaded", config_setting=key, keys=value)


if __name__ == "__main__":
    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    main(stop)
