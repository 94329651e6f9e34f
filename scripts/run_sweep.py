"""
Run one overdue sweep from the command line and print the overdue leads.

Usage:
    python scripts/run_sweep.py            # sweep + send reminders
    python scripts/run_sweep.py --dry-run  # sweep without notifications
"""
import argparse
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadcrm.database import get_session
from leadcrm.logging_config import configure_logging
from leadcrm.lifecycle.config_store import ConfigStore
from leadcrm.lifecycle.sweep import run_sweep
from leadcrm.services.notifications import NotificationDispatcher


def main():
    parser = argparse.ArgumentParser(description='Run one overdue follow-up sweep')
    parser.add_argument('--dry-run', action='store_true', help='do not send reminders')
    args = parser.parse_args()

    configure_logging()
    dispatcher = None if args.dry_run else NotificationDispatcher()
    result = run_sweep(get_session, ConfigStore(), dispatcher)

    print(f"Found {len(result.overdue)} overdue leads")
    for i, notice in enumerate(result.overdue, 1):
        print(f"{i}. {notice.customer_label} ({notice.intention_level}) — "
              f"idle {notice.idle_days} days, limit {notice.threshold_days}")
    if result.failed_levels:
        print(json.dumps(result.failed_levels, ensure_ascii=False, indent=2))
    return 1 if result.error or result.failed_levels else 0


if __name__ == '__main__':
    sys.exit(main())
