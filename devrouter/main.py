#!/usr/bin/env python3
import argparse
import sys
from typing import List, Optional

import uvicorn

from devrouter.config.config_manager import LOG_LEVELS, ServerSettings, config_manager
from devrouter.core.build_server import load_build_server
from devrouter.core.controller import controller
from devrouter.core.frontend import configure_logging, create_app


def resolve_settings(args: argparse.Namespace) -> ServerSettings:
    """Overlay command line flags on the stored configuration."""
    settings = config_manager.settings
    for key in ('host', 'port', 'root', 'build_server', 'log_level'):
        value = getattr(args, key, None)
        if value is not None:
            setattr(settings, key, value)
    return settings


def serve(settings: ServerSettings) -> int:
    """Run the dev server in the foreground until it is stopped."""
    try:
        logger = configure_logging(settings.log_level)
        build_server = load_build_server(settings.build_server, settings.root)
        app = create_app(build_server)
        logger.info(
            "Dev server listening on http://%s:%d (build root: %s)",
            settings.host, settings.port, settings.root,
        )
        # Upstream date/server headers are relayed as-is, so uvicorn must not add its own
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level,
            http='h11',
            timeout_keep_alive=60,
            server_header=False,
            date_header=False,
        )
    except Exception as e:
        print(f"Unexpected dev server error: {e}", file=sys.stderr)
        return 1
    return 0


def add_server_options(parser: argparse.ArgumentParser):
    parser.add_argument('--host', help='Interface to listen on')
    parser.add_argument('--port', type=int, help='Port to listen on')
    parser.add_argument('--root', help='Build output directory served for non-proxied paths')
    parser.add_argument('--build-server', dest='build_server', metavar='MODULE:ATTR',
                        help='Custom build server object or factory')
    parser.add_argument('--log-level', dest='log_level', choices=LOG_LEVELS)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='devrouter - local dev server that forwards /it and /services/timetables to tplfvg.it',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  devrouter serve --root public     Serve ./public in the foreground
  devrouter start                   Start the dev server in the background
  devrouter stop                    Stop the background dev server
  devrouter status                  Show whether the dev server is running
  devrouter config --port 8080      Store the default port""",
        prog='devrouter'
    )
    subparsers = parser.add_subparsers(
        dest='command',
        title='Commands',
        description='Use devrouter <command> --help for detailed help',
        help='Command description'
    )

    serve_parser = subparsers.add_parser(
        'serve',
        help='Run the dev server in the foreground',
        description='Run the dev server until interrupted'
    )
    add_server_options(serve_parser)

    start_parser = subparsers.add_parser(
        'start',
        help='Start the dev server in the background',
        description='Start a detached dev server and record its PID'
    )
    add_server_options(start_parser)

    subparsers.add_parser('stop', help='Stop the background dev server')

    restart_parser = subparsers.add_parser('restart', help='Restart the background dev server')
    add_server_options(restart_parser)

    subparsers.add_parser('status', help='Show dev server status')

    config_parser = subparsers.add_parser(
        'config',
        help='Show or store default settings',
        description=f'Settings are stored in {config_manager.config_file}'
    )
    add_server_options(config_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point that processes CLI arguments"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'serve':
        return serve(resolve_settings(args))
    elif args.command == 'start':
        return 0 if controller.start(resolve_settings(args)) else 1
    elif args.command == 'stop':
        return 0 if controller.stop() else 1
    elif args.command == 'restart':
        return 0 if controller.restart(resolve_settings(args)) else 1
    elif args.command == 'status':
        return 0 if controller.status() else 1
    elif args.command == 'config':
        values = {key: getattr(args, key) for key in ('host', 'port', 'root', 'build_server', 'log_level')}
        settings = config_manager.update(**values)
        for key, value in vars(settings).items():
            print(f"  {key}: {value}")
        return 0

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
