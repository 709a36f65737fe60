#!/usr/bin/env python3
"""
FastAPI server runner for the SchoolsOut activity search backend
"""

import uvicorn
from schoolsout.config import load_settings

if __name__ == "__main__":
    settings = load_settings()
    uvicorn.run(
        "schoolsout.api:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
