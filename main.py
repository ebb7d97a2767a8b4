from config import configure_logging, settings
from nightly_reset import NightlyResetJob
from scheduler import NightlyScheduler
from web_app import app, catalog, store


# ---------------- Nightly reset thread ---------------- #
def start_scheduler():
    job = NightlyResetJob(store, settings.day_boundary, max_workers=settings.reset_workers)
    scheduler = NightlyScheduler(job, settings.day_boundary)
    scheduler.start()
    return scheduler


if __name__ == "__main__":
    configure_logging(settings.log_level)
    catalog.load()

    # Reset runs in a daemon thread; Flask serves the API on localhost:5000
    scheduler = start_scheduler()
    try:
        app.run(debug=False)
    finally:
        scheduler.stop()
