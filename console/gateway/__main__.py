"""
Run the Tracklog Console.

Usage:
    python -m console.gateway
"""

import uvicorn

from .app import app

if __name__ == "__main__":
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)
