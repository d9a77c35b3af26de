from reconciler.config.settings import Settings
from reconciler.database.connection import close_pool, init_pool
from reconciler.logging.logger import Log
from reconciler.services import build_services
from reconciler.worker.worker import SweepWorker


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> start sweep loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        services = build_services(settings)
        worker = SweepWorker(services.synchronizer, services.sweeper, settings)
        worker.run()
    finally:
        close_pool()


if __name__ == "__main__":
    main()
