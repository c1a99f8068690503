#!/usr/bin/env python
"""
Operator utility for the RT-Intel dashboard
- Application health check
- Log truncation
- Credential import and manual runs of discovery, scraping and the autopilot tick
"""

import argparse
import json
import sys
from pathlib import Path

import requests


def check_health(base_url='http://localhost:5000'):
    """Query the running service"""
    try:
        response = requests.get(f'{base_url}/health', timeout=10)
        response.raise_for_status()
        health_data = response.json()

        print(f"\n===== Application status ({health_data['timestamp']}) =====")
        print(f"Status: {health_data['status'].upper()}")
        print(f"Version: {health_data.get('version', 'unknown')}")

        print("\n----- Database -----")
        print(f"Connected: {health_data['database']['connected']}")
        print(f"Articles: {health_data['database']['articles_count']}")
        print(f"Scheduled: {health_data['database']['scheduled_count']}")

        print("\n----- Collaborators -----")
        print(f"LLM configured: {health_data['config']['llm_configured']}")
        print(f"Telegram configured: {health_data['config']['telegram_configured']}")
        print(f"Telegram status: {health_data['config']['telegram_status']}")

        return True
    except (requests.exceptions.RequestException, ValueError, KeyError) as e:
        print(f"Health check failed: {e}")
        return False


def truncate_logs(logs_dir='logs', keep=1000):
    """Keep only the last lines of every log file"""
    logs_dir = Path(logs_dir)
    if not logs_dir.exists():
        print("Log directory not found")
        return

    for log_file in logs_dir.glob('*.log'):
        try:
            with open(log_file, 'r', encoding='utf-8') as f:
                lines = f.readlines()[-keep:]
            with open(log_file, 'w', encoding='utf-8') as f:
                f.writelines(lines)
            print(f"Log {log_file.name} truncated to {keep} lines")
        except OSError as e:
            print(f"Error processing {log_file}: {e}")


def _app():
    from rt_intel.init import create_app
    from rt_intel.utils.logging_utils import setup_logging

    app = create_app()
    setup_logging(app, log_level=app.config['LOG_LEVEL_VALUE'])
    return app


def import_credentials(text):
    from rt_intel import workflow
    from rt_intel.store import IntelStore

    app = _app()
    with app.app_context():
        try:
            settings = workflow.import_credentials(IntelStore.from_app(app), app.config, text)
        except workflow.WorkflowError as e:
            print(f"Import failed: {e}")
            return False
    print(f"Chat: {settings['chat_id']}, status: {settings['status']}, bot: {settings['bot_name'] or '-'}")
    return settings['status'] == workflow.STATUS_SUCCESS


def run_discovery(query, timeframe):
    from rt_intel import workflow
    from rt_intel.store import IntelStore

    app = _app()
    with app.app_context():
        articles = workflow.run_discovery(IntelStore.from_app(app), app.config, query, timeframe)
        for article in articles:
            print(f"[{article.scheduled_at}] {article.title} ({article.url})")
    print(f"Queued {len(articles)} articles")


def run_scrape(url):
    from rt_intel.scraper import scrape_article

    app = _app()
    result = scrape_article(url, app.config).to_dict()
    if result['image_base64']:
        result['image_base64'] = f"<{len(result['image_base64'])} chars>"
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return result['success']


def run_tick():
    from rt_intel.scheduler import autopublish_tick

    article_id = autopublish_tick(_app())
    print(f"Published article {article_id}" if article_id else "Nothing due")


def main():
    parser = argparse.ArgumentParser(description='RT-Intel management utility')
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    health_parser = subparsers.add_parser('health', help='Check the running application')
    health_parser.add_argument('--url', default='http://localhost:5000', help='Service base URL')

    clean_parser = subparsers.add_parser('clean', help='Truncate old logs')
    clean_parser.add_argument('--keep', type=int, default=1000,
                              help='Lines to keep per log file (default 1000)')

    import_parser = subparsers.add_parser('import-credentials',
                                          help='Import a bot token and chat ID from text (stdin when omitted)')
    import_parser.add_argument('text', nargs='?')

    discover_parser = subparsers.add_parser('discover', help='Run web discovery into the queue')
    discover_parser.add_argument('query')
    discover_parser.add_argument('--timeframe', default='آخر 24 ساعة')

    scrape_parser = subparsers.add_parser('scrape', help='Scrape one article and print the result')
    scrape_parser.add_argument('url')

    subparsers.add_parser('tick', help='Run one autopilot tick now')

    args = parser.parse_args()

    if args.command == 'health':
        return 0 if check_health(args.url) else 1
    elif args.command == 'clean':
        truncate_logs(keep=args.keep)
    elif args.command == 'import-credentials':
        return 0 if import_credentials(args.text or sys.stdin.read()) else 1
    elif args.command == 'discover':
        run_discovery(args.query, args.timeframe)
    elif args.command == 'scrape':
        return 0 if run_scrape(args.url) else 1
    elif args.command == 'tick':
        run_tick()
    else:
        parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
