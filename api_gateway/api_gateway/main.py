"""Main entry point for the API Gateway."""

import uvicorn

from api_gateway.server import app

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
