# main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import Config, configure_logging
from src.api.v1 import health
from src.api.v1 import issues

configure_logging()

app = FastAPI(title="econews")

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(issues.router)
app.include_router(health.router)
