#!/usr/bin/env python3
"""
Main entry point for the Smart Calendar engine

Runs the HTTP tool server, executes a single tool call, or rebuilds the
user persona from the configured calendar.
"""

import sys
import json
import logging
from pathlib import Path

# Add the repository root to the Python path
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import Config
from src.api.flask_server import SmartCalendarAPI
from src.api.tool_dispatcher import TOOL_DEFINITIONS, ToolDispatcher
from src.scheduler.smart_scheduler import SmartScheduler
from utils.errors import SmartCalendarError
from utils.logger import SmartCalendarLogger

logger = logging.getLogger(__name__)


def run_server(host=None, port=None):
    """Run the Flask API server"""
    logger.info("Starting Smart Calendar engine...")

    try:
        api = SmartCalendarAPI()
        api.run(host=host, port=port)
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise


def run_tool(name, raw_args=None, output=None):
    """Execute one tool call against the configured calendar and print the result"""
    args = json.loads(raw_args) if raw_args else {}

    scheduler = SmartScheduler()
    try:
        result = ToolDispatcher(scheduler).execute_tool(name, args)
    finally:
        scheduler.close()

    text = json.dumps(result, indent=2, ensure_ascii=False)
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(text)
    else:
        print(text)
    return result


def run_analysis():
    """Rebuild the persona and print its summary"""
    scheduler = SmartScheduler()
    try:
        persona, summary = scheduler.analyze_user_patterns()
    finally:
        scheduler.close()

    print(summary)
    return persona


def main():
    """Main CLI entry point"""
    import argparse

    parser = argparse.ArgumentParser(description='Smart Calendar scheduling & persona engine')
    parser.add_argument('--log-level', default=Config.LOG_LEVEL, help='Logging level')
    parser.add_argument('--log-file', help='Also write logs to this file')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Server command
    server_parser = subparsers.add_parser('server', help='Run the HTTP tool server')
    server_parser.add_argument('--host', default=Config.API_HOST, help='Host to bind to')
    server_parser.add_argument('--port', type=int, default=Config.API_PORT, help='Port to bind to')

    # Single tool call
    tool_parser = subparsers.add_parser('tool', help='Execute a single tool call')
    tool_parser.add_argument('name', help='Tool name (see the "tools" command)')
    tool_parser.add_argument('--args', help='Tool arguments as a JSON object')
    tool_parser.add_argument('--output', help='Output JSON file')

    subparsers.add_parser('analyze', help='Rebuild the user persona from calendar history')
    subparsers.add_parser('tools', help='List available tools')

    args = parser.parse_args()
    SmartCalendarLogger.setup_logging(log_level=args.log_level, log_file=args.log_file)

    try:
        if args.command == 'server':
            run_server(host=args.host, port=args.port)

        elif args.command == 'tool':
            run_tool(args.name, args.args, args.output)

        elif args.command == 'analyze':
            run_analysis()

        elif args.command == 'tools':
            for tool in TOOL_DEFINITIONS:
                print(f"{tool['name']:<30} {tool['description']}")

        else:
            parser.print_help()
    except (SmartCalendarError, json.JSONDecodeError) as e:
        logger.error(f"❌ {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
