import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend import sessions
from backend.routes import router
from velvet.llm import GenerativeService

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, service: GenerativeService | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    sessions.init_sessions(resolved, service=service)

    app = FastAPI(title="Velvet")
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
