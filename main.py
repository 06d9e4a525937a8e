import os
import signal
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# Load .env before reading PORT/HOST/ENVIRONMENT and the sandbox admin credentials
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def run_sandbox() -> None:
    """
    Serve the in-memory MemoryHaze API.
    Point MEMORYHAZE_API_BASE_URL at it to develop against the client.
    """
    port = int(os.getenv("PORT", "5000"))
    host = os.getenv("HOST", "127.0.0.1")
    environment = os.getenv("ENVIRONMENT", "development").lower()
    reload = environment == "development"

    print(f"MemoryHaze sandbox API ({environment}) on http://{host}:{port}")
    print("State lives in memory and is lost on restart. Press CTRL+C to stop.")

    def on_shutdown(sig, frame):
        print("\nStopping sandbox...")
        sys.exit(0)

    signal.signal(signal.SIGINT, on_shutdown)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, on_shutdown)

    uvicorn.run(
        "web.sandbox_api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="debug" if reload else "info",
    )


if __name__ == "__main__":
    run_sandbox()
