"""Run the FastAPI server (dev helper)."""
from __future__ import annotations

import uvicorn

from asymmetry.core.config import get_settings
from asymmetry.core.logging_config import setup_logging


def main() -> None:
    s = get_settings()
    setup_logging(s.log_level)
    # Single worker: the session controller and pose backend are process-wide
    uvicorn.run("asymmetry.api.main:app", host=s.api_host, port=s.api_port, reload=s.environment == "dev")


if __name__ == "__main__":
    main()
