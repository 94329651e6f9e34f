"""
Centralized configuration — all env vars, constants, intention levels.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')
# One connection per request thread plus one for the sweep thread
DB_POOL_SIZE = int(os.getenv('DB_POOL_SIZE', '3'))
DB_MAX_OVERFLOW = int(os.getenv('DB_MAX_OVERFLOW', '2'))

# ── Intention levels ──────────────────────────────────────────────────────────
INTENTION_LEVELS = ('High', 'Medium', 'Low')

# Threshold used when a level has no row in followup_remind_config
DEFAULT_MAX_IDLE_DAYS = int(os.getenv('DEFAULT_MAX_IDLE_DAYS', '3'))

# IntentionConfig cache lifetime (seconds)
CONFIG_CACHE_TTL = int(os.getenv('CONFIG_CACHE_TTL', '300'))

# ── Overdue sweep schedule ────────────────────────────────────────────────────
DEFAULT_SCHEDULE_TIMES = '09:00,11:30,14:00,16:30,19:00'
REMIND_SCHEDULE_TIMES = os.getenv('REMIND_SCHEDULE_TIMES', DEFAULT_SCHEDULE_TIMES)
REMIND_RUN_ON_START = os.getenv('REMIND_RUN_ON_START', '1') not in ('0', 'false', 'False')
SCHEDULER_ENABLED = os.getenv('SCHEDULER_ENABLED', '1') not in ('0', 'false', 'False')

# ── Email (SMTP) ──────────────────────────────────────────────────────────────
SMTP_HOST = os.getenv('SMTP_HOST')
SMTP_PORT = int(os.getenv('SMTP_PORT', '465'))
SMTP_USER = os.getenv('SMTP_USER')
SMTP_PASSWORD = os.getenv('SMTP_PASSWORD')
SMTP_FROM = os.getenv('SMTP_FROM') or SMTP_USER
SMTP_USE_SSL = os.getenv('SMTP_USE_SSL', '1') not in ('0', 'false', 'False')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Journal paging ────────────────────────────────────────────────────────────
JOURNAL_PAGE_SIZE = 20
JOURNAL_MAX_PAGE_SIZE = 100
