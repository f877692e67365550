"""
Entry point for AutoLogout application.
This module provides a command-line interface to start the API server, the
desktop client or a session simulation.
"""

import argparse
import sys

from AutoLogout.config import config
from AutoLogout.start import api, client, simulate


def parse():
    # Initialize argument parser for command line interface
    parser = argparse.ArgumentParser(prog='AutoLogout', description='AutoLogout starter')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    # Setup api command line arguments
    api_parser = subparsers.add_parser('api', help='Startup API server')
    api_parser.add_argument('--host', default=config.DEFAULT_HOST,
                            help=f'api listening address (default: {config.DEFAULT_HOST})')
    api_parser.add_argument('--port', type=int, default=config.DEFAULT_API_PORT,
                            help=f'api server port (default: {config.DEFAULT_API_PORT})')
    api_parser.add_argument('--settings', default=None, help='JSON settings file')

    # Setup client command line arguments
    client_parser = subparsers.add_parser('client', help='Startup desktop CLIENT')
    client_parser.add_argument('--host', default=config.DEFAULT_HOST,
                               help=f'API server address (default: {config.DEFAULT_HOST})')
    client_parser.add_argument('--port', type=int, default=config.DEFAULT_API_PORT,
                               help=f'API server port (default: {config.DEFAULT_API_PORT})')
    client_parser.add_argument('--user', default='demo', help='User id (default: demo)')
    client_parser.add_argument('--roles', nargs='*', default=[], help='Roles of the user')
    client_parser.add_argument('--refresh-only', action='store_true', help='Keep the session alive only')

    # Setup simulate command line arguments
    sim_parser = subparsers.add_parser('simulate', help='Replay a session on virtual time')
    sim_parser.add_argument('--timeout', type=int, default=config.DEFAULT_TIMEOUT, help='Idle timeout in seconds')
    sim_parser.add_argument('--padding', type=int, default=config.DEFAULT_PADDING, help='Warning padding in seconds')
    sim_parser.add_argument('--remaining', nargs='+', default=['0'],
                            help="Successive server time-left answers, 'x' for an outage (default: 0)")
    sim_parser.add_argument('--answer', choices=['extend', 'logout', 'dismiss'], default=None,
                            help='What the user does when warned (default: nothing)')
    sim_parser.add_argument('--answer-after', type=float, default=0.0, help='Seconds before the user answers')
    sim_parser.add_argument('--skip-dialog', action='store_true', help='Log out without warning')
    sim_parser.add_argument('--refresh-only', action='store_true', help='Keep-alive only mode')
    sim_parser.add_argument('--alt-logout', action='store_true', help='Use the alternate logout method')
    sim_parser.add_argument('--horizon', type=float, default=24 * 3600.0, help='Stop after this many seconds')

    args = parser.parse_args()

    return args


def main():
    args = parse()

    if args.command == 'api':
        api.api(port=args.port, host=args.host, settings_file=args.settings)
    elif args.command == 'client':
        client.client(host=args.host, port=args.port, user=args.user,
                      roles=args.roles, refresh_only=args.refresh_only)
    elif args.command == 'simulate':
        sys.exit(simulate.simulate(
            timeout=args.timeout,
            padding=args.padding,
            remaining=args.remaining,
            answer=args.answer,
            answer_after=args.answer_after,
            skip_dialog=args.skip_dialog,
            refresh_only=args.refresh_only,
            alt_logout=args.alt_logout,
            horizon=args.horizon,
        ))
    else:
        raise Exception('Unknown command')


if __name__ == '__main__':
    main()
