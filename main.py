import argparse
import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager

import sys
from pathlib import Path

# Add project root to path for package imports
base_dir = Path(__file__).parent
sys.path.insert(0, str(base_dir))

from db.database import init_db, get_schema_version_from_db
from config import load_config
from routes import history, rooms  # Import routers
from utils.logs import configure_logging

app = FastAPI(title="SpellBee", description="Spaced-repetition word book and 1v1 spelling matches")

# Include routers
app.include_router(history.router, prefix="/history", tags=["history"])
app.include_router(rooms.router, prefix="/rooms", tags=["rooms"])

@app.get("/")
async def home():
    return {"app": "SpellBee", "schema_version": get_schema_version_from_db()}

# First-run init
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: config, logging and DB
    config = load_config()  # Ensures config exists
    configure_logging(config["logging"]["level"])
    init_db()
    yield

app.router.lifespan_context = lifespan  # For auto init on start

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="SpellBee API")
    parser.add_argument("--init", action="store_true", help="Initialize DB and config")
    parser.add_argument("--dev", action="store_true", help="Run in dev mode with reload")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    args = parser.parse_args()
    if args.init:
        load_config()  # Ensures config is copied if missing
        init_db()
        print("DB initialized and config copied to ~/.spellbee/")
        sys.exit(0)
    # Run server
    reload = args.dev
    uvicorn.run("main:app", host="127.0.0.1", port=args.port, reload=reload, log_level="info")
