"""
Notifications — overdue follow-up reminders by email (SMTP) and Slack.

The sweep hands over the overdue leads grouped by intention level. Each
channel is optional (skipped when unconfigured) and wrapped in its own
circuit breaker. A failing channel does not stop the others; if any channel
fails, NotificationError is raised after all of them were tried so the sweep
can log it without touching the flags it already persisted.
"""
import html
import logging
import smtplib
from dataclasses import dataclass, asdict
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, List, Optional

import requests

from leadcrm import config
from leadcrm.lifecycle.errors import NotificationError
from leadcrm.services.circuit_breaker import get_breaker

logger = logging.getLogger('services.notifications')


@dataclass
class OverdueNotice:
    """One overdue lead, as reported to the reminder recipients."""
    lead_id: int
    customer_label: str
    contact_info: Optional[str]
    last_contact_time: Optional[datetime]
    last_contact_content: Optional[str]
    responsible_person: Optional[str]
    intention_level: str
    idle_days: int
    threshold_days: int

    def to_dict(self):
        data = asdict(self)
        if self.last_contact_time is not None:
            data['last_contact_time'] = self.last_contact_time.isoformat(sep=' ')
        return data


def _fmt_time(value):
    if value is None:
        return '-'
    return value.strftime('%Y-%m-%d %H:%M:%S')


def _count(groups):
    return sum(len(items) for items in groups.values())


# ── Rendering ────────────────────────────────────────────────────────────────

def render_subject(groups: Dict[str, List[OverdueNotice]]) -> str:
    return f"Follow-up overdue reminder — {_count(groups)} leads need follow-up"


def render_text(groups: Dict[str, List[OverdueNotice]]) -> str:
    lines = [
        'Follow-up overdue reminder',
        '',
        'The following leads have gone longer than their configured follow-up interval:',
        '',
    ]
    for level, items in groups.items():
        lines.append(f'{level} intention ({len(items)}):')
        for n in items:
            lines.append(
                f'- {n.customer_label} | contact: {n.contact_info or "-"} | '
                f'last contact: {_fmt_time(n.last_contact_time)} | '
                f'content: {n.last_contact_content or "-"} | '
                f'owner: {n.responsible_person or "-"} | '
                f'idle {n.idle_days}d (limit {n.threshold_days}d)'
            )
        lines.append('')
    lines.append('This message was sent automatically.')
    return '\n'.join(lines)


def render_html(groups: Dict[str, List[OverdueNotice]]) -> str:
    esc = lambda v: html.escape(str(v)) if v not in (None, '') else '-'
    parts = [
        '<h2>Follow-up overdue reminder</h2>',
        '<p>The following leads have gone longer than their configured follow-up interval:</p>',
    ]
    for level, items in groups.items():
        parts.append(f'<h3>{esc(level)} intention ({len(items)})</h3>')
        parts.append('<table border="1" cellpadding="6" style="border-collapse:collapse;margin-bottom:20px;">')
        parts.append(
            '<tr style="background-color:#f5f5f5;"><th>Customer</th><th>Contact</th>'
            '<th>Last contact</th><th>Last content</th><th>Owner</th><th>Idle days</th><th>Limit</th></tr>'
        )
        for n in items:
            parts.append(
                '<tr>'
                f'<td>{esc(n.customer_label)}</td>'
                f'<td>{esc(n.contact_info)}</td>'
                f'<td>{esc(_fmt_time(n.last_contact_time))}</td>'
                f'<td>{esc(n.last_contact_content)}</td>'
                f'<td>{esc(n.responsible_person)}</td>'
                f'<td>{n.idle_days}</td>'
                f'<td>{n.threshold_days}</td>'
                '</tr>'
            )
        parts.append('</table>')
    parts.append('<p style="color:#666;font-size:12px;">This message was sent automatically.</p>')
    return '\n'.join(parts)


def render_slack_blocks(groups: Dict[str, List[OverdueNotice]]) -> list:
    blocks = [{
        "type": "header",
        "text": {"type": "plain_text", "text": render_subject(groups)},
    }]
    for level, items in groups.items():
        lines = [
            f"• *{n.customer_label}* ({n.responsible_person or 'unassigned'}) — "
            f"idle {n.idle_days}d / limit {n.threshold_days}d"
            for n in items[:20]
        ]
        if len(items) > 20:
            lines.append(f"_…and {len(items) - 20} more_")
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*{level} intention ({len(items)})*\n" + "\n".join(lines)},
        })
    return blocks


# ── Dispatcher ───────────────────────────────────────────────────────────────

class NotificationDispatcher:
    """Delivers grouped overdue notices to every configured channel."""

    def __init__(
        self,
        smtp_host=None,
        smtp_port=None,
        smtp_user=None,
        smtp_password=None,
        smtp_from=None,
        smtp_use_ssl=None,
        slack_webhook_url=None,
        redis_client=None,
    ):
        self.smtp_host = smtp_host if smtp_host is not None else config.SMTP_HOST
        self.smtp_port = smtp_port or config.SMTP_PORT
        self.smtp_user = smtp_user if smtp_user is not None else config.SMTP_USER
        self.smtp_password = smtp_password if smtp_password is not None else config.SMTP_PASSWORD
        self.smtp_from = smtp_from or config.SMTP_FROM or self.smtp_user
        self.smtp_use_ssl = config.SMTP_USE_SSL if smtp_use_ssl is None else smtp_use_ssl
        self.slack_webhook_url = (
            slack_webhook_url if slack_webhook_url is not None else config.SLACK_WEBHOOK_URL
        )
        self.redis_client = redis_client

    def dispatch(self, groups: Dict[str, List[OverdueNotice]], recipients: List[str]) -> Dict[str, bool]:
        """
        Send the reminder; return {channel: delivered} for attempted channels.

        Raises NotificationError when at least one attempted channel failed.
        """
        if not groups:
            return {}

        delivered = {}
        failures = {}

        if not self.smtp_host:
            logger.debug("SMTP_HOST not set — email reminder skipped")
        elif not recipients:
            logger.info("No reminder recipients configured — email reminder skipped")
        else:
            try:
                get_breaker('smtp', self.redis_client).call(self._send_email, groups, recipients)
                delivered['email'] = True
                logger.info("Overdue reminder emailed to %d recipients (%d leads)",
                            len(recipients), _count(groups))
            except Exception as e:
                delivered['email'] = False
                failures['email'] = str(e)
                logger.error("Failed to send overdue reminder email", exc_info=True)

        if self.slack_webhook_url:
            try:
                get_breaker('slack', self.redis_client).call(self._post_slack, groups)
                delivered['slack'] = True
                logger.info("Overdue reminder posted to Slack (%d leads)", _count(groups))
            except Exception as e:
                delivered['slack'] = False
                failures['slack'] = str(e)
                logger.error("Failed to post overdue reminder to Slack", exc_info=True)

        if failures:
            raise NotificationError(failures)
        return delivered

    def _send_email(self, groups, recipients):
        msg = MIMEMultipart('alternative')
        msg['Subject'] = render_subject(groups)
        msg['From'] = self.smtp_from
        msg['To'] = ', '.join(recipients)
        msg.attach(MIMEText(render_text(groups), 'plain', 'utf-8'))
        msg.attach(MIMEText(render_html(groups), 'html', 'utf-8'))

        smtp_cls = smtplib.SMTP_SSL if self.smtp_use_ssl else smtplib.SMTP
        with smtp_cls(self.smtp_host, self.smtp_port, timeout=30) as server:
            if not self.smtp_use_ssl:
                server.starttls()
            if self.smtp_user and self.smtp_password:
                server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg, to_addrs=recipients)

    def _post_slack(self, groups):
        resp = requests.post(self.slack_webhook_url, json={"blocks": render_slack_blocks(groups)}, timeout=10)
        resp.raise_for_status()
