"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routers import query, schema

app = FastAPI(
    title="Ads Analytics Copilot",
    version="0.1.0",
    description="Ask questions about ad spend in plain language or SQL",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query.router, tags=["Query"])
app.include_router(schema.router, tags=["Schema"])


@app.get("/health")
def health():
    return {"status": "ok"}
