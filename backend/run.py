"""
Local entry point: python run.py
Production runs a single worker by default; the token cache is per process,
so extra workers only multiply LWA token exchanges.
"""
import os
import uvicorn

if __name__ == "__main__":
    is_dev = os.environ.get("ENVIRONMENT", "development").lower() != "production"
    uvicorn.run(
        "sellersync.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=is_dev,
        workers=1 if is_dev else int(os.environ.get("WEB_CONCURRENCY", 1)),
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
    )
