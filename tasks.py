from celery_app import app
from src.database.db import SessionLocal
from src.services import jobs


@app.task(queue="pipeline")
def run_pipeline():
    db = SessionLocal()
    try:
        result = jobs.run_pipeline(db)
        return result.status.value if result else None
    finally:
        db.close()


@app.task(queue="lifecycle")
def run_lifecycle_update():
    db = SessionLocal()
    try:
        return jobs.run_lifecycle_update(db)
    finally:
        db.close()
