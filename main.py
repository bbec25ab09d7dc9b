from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict

import uvicorn
from dotenv import load_dotenv

from nokode.config import load_app_config
from nokode.server import create_app


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# --------------------------------------------------------------------------------------
# Startup helpers
# --------------------------------------------------------------------------------------


def configure_logging(cfg: Dict[str, Any]) -> None:
    """
    Configure root logging. `debug: true` (or DEBUG=true) enables the
    per-request prompt and parameter details.
    """
    level = logging.DEBUG if cfg.get("debug") else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def print_banner(cfg: Dict[str, Any]) -> None:
    provider_name = cfg.get("provider", "anthropic")
    model = cfg.get("providers", {}).get(provider_name, {}).get("model", "?")
    port = cfg["server"]["port"]

    print(f"🤖 nokode server running on http://localhost:{port}")
    print(f"🧠 Using {provider_name} provider")
    print(f"⚡ Model: {model}")
    print("🚀 Every request will be handled by AI. Make any HTTP request and see what happens.")
    print("💰 Warning: Each request costs API tokens!")


# --------------------------------------------------------------------------------------
# CLI
# --------------------------------------------------------------------------------------


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="HTTP server where every request is handled by a tool-calling LLM agent."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional path to a config.yaml file. Environment variables override it.",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Interface to bind (overrides server.host / HOST).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (overrides server.port / PORT).",
    )
    return parser.parse_args(argv)


# --------------------------------------------------------------------------------------
# main()
# --------------------------------------------------------------------------------------


def main() -> None:
    # Load environment variables from .env (if present)
    load_dotenv()

    args = parse_args(sys.argv[1:])

    config = load_app_config(args.config)
    if args.host:
        config["server"]["host"] = args.host
    if args.port:
        config["server"]["port"] = args.port

    configure_logging(config)

    app = create_app(config)

    print_banner(config)
    uvicorn.run(
        app,
        host=config["server"]["host"],
        port=config["server"]["port"],
        log_config=None,
    )


if __name__ == "__main__":
    main()
