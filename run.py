"""
Startup script for the RenderLab metering API
Reads PORT from environment and starts uvicorn server
"""
import os
import uvicorn
from renderlab.main import app

if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    host = os.getenv("HOST", "0.0.0.0")

    print("Starting RenderLab Metering API server...")
    print(f"Binding to {host}:{port}")

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info"
    )
