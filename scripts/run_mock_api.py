"""
Mock Dashboard API Launcher

Serves the in-memory dashboard API the console talks to during local runs.

Usage:
    python scripts/run_mock_api.py --host 127.0.0.1 --port 5000

Environment Variables:
    OPSCONSOLE_MOCK_BIND_HOST: Bind address (default: 127.0.0.1)
    OPSCONSOLE_MOCK_PORT: API port (default: 5000)
    OPSCONSOLE_LOG_LEVEL: Log level (default: INFO)
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uvicorn

from shared.config import ConsoleConfig, validate_config
from shared.logging_config import setup_logging


def main() -> None:
    config = ConsoleConfig.from_env()
    parser = argparse.ArgumentParser(description="Run the Rider Ops mock dashboard API")
    parser.add_argument("--host", default=config.mock_bind_host)
    parser.add_argument("--port", type=int, default=config.mock_port)
    args = parser.parse_args()

    validate_config(config)
    setup_logging("mockapi", level=config.log_level)

    print("=" * 60)
    print("Rider Ops Mock Dashboard API")
    print("=" * 60)
    print(f"API Address: http://{args.host}:{args.port}/api/v1")
    print("=" * 60)

    uvicorn.run("mockapi.service:app", host=args.host, port=args.port, reload=False)


if __name__ == "__main__":
    main()
