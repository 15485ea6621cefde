#!/usr/bin/env python3

import uvicorn

from api.server import create_app
from logger import get_logger

logger = get_logger()


def cmd_serve(args, services):
    """Serve the /extract API."""
    app = create_app(config=services.config)
    logger.info(f"Serving extraction API on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)


def setup_parser(subparsers):
    """Setup serve command parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP extraction API",
        description="Serve POST /extract for clients that add expenses from free text",
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=3000)
    parser.set_defaults(func=cmd_serve)
