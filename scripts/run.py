#!/usr/bin/env python3
"""Serve the attendance API with Uvicorn; reload is opt-in via APP_RELOAD."""

import os

import uvicorn

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def main():
    reload = os.getenv("APP_RELOAD", "false").lower() in ("true", "1", "t")

    uvicorn.run(
        "main:app",
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", os.getenv("APP_PORT", "8000"))),
        reload=reload,
        reload_dirs=[PROJECT_ROOT] if reload else None,
        # Match the application's own LOG_LEVEL setting
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        app_dir=PROJECT_ROOT,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
