from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import API_BASE, cors_origins
from .routes import router

app = FastAPI(title="TimeBlocks")

if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router, prefix=API_BASE)


@app.get("/health")
def health():
    return {"ok": True}
