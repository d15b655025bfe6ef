#!/usr/bin/env python3
"""
Runner script for the personalization service.
Sets up logging, builds the Flask app from configuration and serves it.
"""

import argparse
import sys
from pathlib import Path

# Add the current directory to Python path
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

from config_manager import ConfigManager
from personalization_service.logging_config import setup_logging, stop_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Feed personalization and generation service")
    parser.add_argument("--config", type=str, default="personalization_config.json", help="Path to the JSON config file")
    parser.add_argument("--port", type=int, help="Port to run the server on")
    parser.add_argument("--host", type=str, help="Host to bind the server to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    args = parser.parse_args()

    config = ConfigManager(args.config)
    app_config = config.get_app_config()
    paths_config = config.get_paths_config()

    # Override configuration with command line arguments
    if args.port:
        app_config.port = args.port
    if args.host:
        app_config.host = args.host
    if args.debug:
        app_config.debug = True

    setup_logging(debug=app_config.debug, log_file=Path(paths_config.log_file) if paths_config.log_file else None)

    from app.main import create_app
    app = create_app(config)
    service = app.extensions["personalization_service"]

    llm_config = config.get_llm_config()
    print(f"📋 Configuration loaded:")
    print(f"   - Primary provider: {llm_config.primary_provider} ({llm_config.primary_model})")
    print(f"   - Fallback provider: {llm_config.fallback_provider} ({llm_config.fallback_model})")
    print(f"   - Store backend: {config.get_cache_config().backend}")
    print(f"   - Server: {app_config.host}:{app_config.port}")

    try:
        app.run(
            host=app_config.host,
            port=app_config.port,
            debug=app_config.debug
        )
    finally:
        service.shutdown()
        stop_logging()


if __name__ == "__main__":
    main()
