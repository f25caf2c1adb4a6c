"""
Receipt / NFCe Product Extraction API - Main Application
FastAPI application that turns receipt photos and NFCe QR codes into
inventory products

Run with: python main.py
Access API docs at: http://localhost:8000/docs
"""

import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from api import HealthResponse, register_exception_handlers, router
from utils import load_config, setup_logging

config = load_config()
setup_logging(config["logging"]["file"], config["logging"]["level"])

# Create FastAPI app
app = FastAPI(
    title="Receipt / NFCe Extraction API",
    description="Extract household inventory products from receipt photos and NFCe QR codes",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(router, prefix="/api/v1")


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    return HealthResponse()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
