"""
Entry point for the Kickoff web backend.

    python web_main.py                          ← reads ./config.yaml
    KICKOFF_CONFIG=/etc/kickoff.yaml python web_main.py
"""

import os

import uvicorn

from kickoff.config import load_config

if __name__ == "__main__":
    config = load_config(os.environ.get("KICKOFF_CONFIG", "config.yaml"))
    uvicorn.run(
        "kickoff.web.app:build_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
    )
