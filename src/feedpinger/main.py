"""
Main entry point for feedpinger.

Commands:

1. API Server Mode (default):
   python -m feedpinger.main
   python -m feedpinger.main serve

2. Run Mode (one-shot, for cron):
   python -m feedpinger.main run

3. Database Setup Mode:
   python -m feedpinger.main setup-db

4. Show the configured sites:
   python -m feedpinger.main show-sites

How This Works:
- The CLI uses argparse for argument parsing
- Each command maps to an async function run with asyncio.run()
- structlog provides structured logging throughout
"""

# Load .env into os.environ first so IndexNow keys named by indexNowKeyEnv
# are visible to EnvSecretProvider
from dotenv import load_dotenv

load_dotenv()

import argparse
import asyncio
import json
import logging
import sys

import structlog
import uvicorn

from feedpinger.config import ConfigError, Settings, dump_site_configs, get_settings

# ========================================
# LOGGING CONFIGURATION
# ========================================


def configure_logging(log_level: str = "INFO") -> None:
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


# ========================================
# COMMAND FUNCTIONS
# ========================================


async def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server (see feedpinger/api.py)."""
    logger.info("Starting API server", host=host, port=port, reload=reload)

    config = uvicorn.Config(
        "feedpinger.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


async def run_once(settings: Settings) -> int:
    """
    Check every configured site once and exit.

    Returns:
        Process exit code: 0 when every site completed or was skipped,
        1 when a site failed or configuration could not be loaded
    """
    from feedpinger.db import close_db_pool
    from feedpinger.graph import run_notifier

    try:
        summary = await run_notifier(settings)
    except ConfigError as e:
        logger.error("Invalid site configuration", error=str(e))
        print(f"\nConfiguration Error: {e}")
        return 1
    except Exception as e:
        logger.error("Run failed", error=str(e))
        print(f"\nRun failed: {e}")
        return 1
    finally:
        await close_db_pool()

    print("\n" + "=" * 60)
    print("Run Complete")
    print("=" * 60)
    print(f"Sites: {summary['site_count']}")
    print(f"Completed: {summary['completed']}")
    print(f"Skipped: {summary['skipped']}")
    print(f"Failed: {summary['failed']}")

    for site in summary["sites"]:
        sent = [n["target"] for n in site["notifications"] if n["status"] == "sent"]
        line = f"  - {site['site_id']}: {site['status']}, {len(site['qualifying_urls'])} URLs"
        if sent:
            line += f", notified {', '.join(sent)}"
        if site["error"]:
            line += f" ({site['error']})"
        print(line)

    return 1 if summary["failed"] else 0


async def setup_database() -> int:
    from feedpinger.db import close_db_pool
    from feedpinger.db.setup_db import get_table_stats, setup_database

    logger.info("Setting up database")

    try:
        await setup_database()
        stats = await get_table_stats()

        print("\n" + "=" * 60)
        print("Database Setup Complete")
        print("=" * 60)
        print(f"kv_store: {stats['keys']} keys ({stats['checkpoints']} checkpoints)")
        return 0

    except Exception as e:
        logger.error("Database setup failed", error=str(e))
        print(f"\nDatabase setup failed: {e}")
        print("\nMake sure PostgreSQL is running and DATABASE_URL is correct.")
        return 1

    finally:
        await close_db_pool()


async def show_sites(settings: Settings) -> int:
    from feedpinger.db import close_db_pool, get_kv_store
    from feedpinger.db.sites import load_site_configs

    try:
        sites = await load_site_configs(settings, await get_kv_store(settings))
    except ConfigError as e:
        print(f"\nConfiguration Error: {e}")
        return 1
    finally:
        await close_db_pool()

    print(json.dumps(dump_site_configs(sites), indent=2))
    return 0


# ========================================
# CLI ENTRY POINT
# ========================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="feedpinger - notify search engines and ping services about new feed posts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m feedpinger.main serve             # Start API server
  python -m feedpinger.main serve --port 8080 # Custom port
  python -m feedpinger.main run               # Check all sites once
  python -m feedpinger.main setup-db          # Initialize database
  python -m feedpinger.main show-sites        # Print site configuration
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument(
        "--port", type=int, default=8000, help="Port to listen on (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    subparsers.add_parser("run", help="Check all sites once")
    subparsers.add_parser("setup-db", help="Initialize the database schema")
    subparsers.add_parser("show-sites", help="Print the site configuration in use")

    return parser


def main():
    args = build_parser().parse_args()

    # Default to 'serve' if no command specified
    if args.command is None:
        args.command = "serve"
        args.host = "0.0.0.0"
        args.port = 8000
        args.reload = False

    try:
        settings = get_settings()
    except Exception as e:
        configure_logging()
        logger.error("Failed to load settings", error=str(e))
        print(f"\nConfiguration Error: {e}")
        print("\nCheck your .env file and environment variables.")
        sys.exit(1)

    configure_logging(settings.log_level)
    logger.debug("Settings loaded", store_backend=settings.store_backend)

    if args.command == "serve":
        asyncio.run(run_server(host=args.host, port=args.port, reload=args.reload))
    elif args.command == "run":
        sys.exit(asyncio.run(run_once(settings)))
    elif args.command == "setup-db":
        sys.exit(asyncio.run(setup_database()))
    elif args.command == "show-sites":
        sys.exit(asyncio.run(show_sites(settings)))


if __name__ == "__main__":
    main()
