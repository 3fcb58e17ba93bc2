"""
Container entrypoint for the listing engine.

Binds to 0.0.0.0:$PORT as required by the hosting platform.
"""

import logging
import os

import uvicorn

if __name__ == "__main__":
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting listing engine on port {port}")

    # Import app here to ensure clean module loading
    from web.app import app

    uvicorn.run(app, host="0.0.0.0", port=port)
