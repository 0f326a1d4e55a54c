"""
Main Entry Module

Runs the development server for the tracker API.

Dependencies:
- uvicorn for server
"""

import os

import uvicorn

from timekeep.shared import config


def run():
    uvicorn.run(
        "timekeep.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
