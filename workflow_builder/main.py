"""Entry point for serving the workflow builder."""

import uvicorn

from .config import load_config
from .factory import create_app

config = load_config()
app = create_app(config)


def run() -> None:
    """Serve the application with uvicorn."""
    uvicorn.run("workflow_builder.main:app", **config.get_uvicorn_config())


if __name__ == "__main__":
    run()
