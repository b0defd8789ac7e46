"""Main entry point for the Delivery Service."""

import uvicorn

from delivery_service.server import app

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
