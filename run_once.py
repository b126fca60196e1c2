# run_once.py
from config import configure_logging
from src.database.db import init_db
from tasks import run_lifecycle_update, run_pipeline

if __name__ == "__main__":
    configure_logging()
    init_db()

    # one pipeline run
    run_pipeline.apply_async(queue="pipeline")

    # one lifecycle sweep
    run_lifecycle_update.apply_async(queue="lifecycle")

    print("Tasks sent to the queues.")
