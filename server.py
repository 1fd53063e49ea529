"""
server.py

Entry point for the Wolkenlauf provisioner API server.

Usage:
    python server.py                    # default: 0.0.0.0:$PORT (8080), auto-reload off
    python server.py --port 9000        # custom port
    python server.py --reload           # enable auto-reload for development

Or directly via uvicorn:
    uvicorn api.app:app --reload --port 8080
"""

import uvicorn

from config import configure_logging, load_config

if __name__ == "__main__":
    import argparse

    config = load_config()

    parser = argparse.ArgumentParser(description="Start the Wolkenlauf provisioner API server.")
    parser.add_argument("--host",   default="0.0.0.0",  help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port",   default=config.port, type=int, help=f"Bind port (default: {config.port})")
    parser.add_argument("--reload", action="store_true",   help="Enable auto-reload (dev mode)")
    args = parser.parse_args()

    configure_logging(config.log_level)

    print(f"\n  🚀  VM Provisioner starting on http://{args.host}:{args.port}")
    print("  📡  Supported providers: AWS (GPU), Hetzner (CPU)")
    print(f"  📖  Interactive docs → http://localhost:{args.port}/docs\n")

    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=config.log_level.lower(),
    )
