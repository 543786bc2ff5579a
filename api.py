"""
Test Assembly API — Main Application
FastAPI application for the non-redundant multi-version test assembly service.
Manages the question bank, TOS-driven assembly, and generated test versions.
"""

from dotenv import load_dotenv
load_dotenv()

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from database.database import engine, Base
from database import models  # noqa: F401  (registers tables on Base.metadata)

from routers import questions, tests

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables."""
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Test Assembly API",
    description="Question bank, intent-driven question generation, and multi-version test assembly",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(questions.router)          # /questions/*
app.include_router(tests.router)              # /tests/*


@app.get("/")
def root():
    return {
        "name": "Test Assembly API",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "questions": "/questions",
            "tests": "/tests",
        },
    }


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "test-assembly-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
