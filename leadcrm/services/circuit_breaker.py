"""
Circuit breaker for outbound notification channels, state kept in Redis.

Each channel (smtp, slack) has one Redis hash `cb:<name>` holding its state,
consecutive failure count and lifetime health counters. States:
  - CLOSED    → deliveries pass through
  - OPEN      → too many consecutive failures, deliveries short-circuit
  - HALF_OPEN → reset_timeout elapsed, the next delivery is a trial

Redis trouble never blocks delivery: every Redis error reads as CLOSED.
"""
import logging
import time

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """Raised when delivering through an open breaker."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN — channel unavailable")


class CircuitBreaker:
    """
    Usage:
        cb = CircuitBreaker('smtp', redis_client, failure_threshold=3, reset_timeout=600)
        cb.call(send_mail, message)
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=600, clock=time.time):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock

    @property
    def key(self):
        return f'{self.PREFIX}:{self.name}'

    def _read(self):
        try:
            return self.redis.hgetall(self.key) or {}
        except Exception:
            return {}

    def _write(self, mapping):
        try:
            self.redis.hset(self.key, mapping=mapping)
        except Exception:
            logger.debug("Circuit '%s': Redis write failed", self.name, exc_info=True)

    @property
    def state(self):
        data = self._read()
        current = data.get('state') or CLOSED
        if current == OPEN:
            opened = float(data.get('last_failure') or 0)
            if self._clock() - opened > self.reset_timeout:
                self._write({'state': HALF_OPEN})
                return HALF_OPEN
        return current

    @property
    def failure_count(self):
        return int(self._read().get('failures') or 0)

    def get_health(self):
        """Health snapshot for /api/health."""
        data = self._read()
        return {
            'name': self.name,
            'state': self.state,
            'failure_count': int(data.get('failures') or 0),
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success') or 0),
            'total_failure': int(data.get('failure') or 0),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        }

    def call(self, func, *args, **kwargs):
        """Run func through the breaker; failures count toward opening it."""
        if self.state == OPEN:
            last = float(self._read().get('last_failure') or 0)
            retry_after = max(0.0, self.reset_timeout - (self._clock() - last)) if last else None
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _on_success(self):
        data = self._read()
        self._write({
            'state': CLOSED,
            'failures': 0,
            'success': int(data.get('success') or 0) + 1,
            'last_success': str(self._clock()),
        })

    def _on_failure(self, error):
        data = self._read()
        failures = int(data.get('failures') or 0) + 1
        opened = failures >= self.failure_threshold or data.get('state') == HALF_OPEN
        self._write({
            'state': OPEN if opened else (data.get('state') or CLOSED),
            'failures': failures,
            'failure': int(data.get('failure') or 0) + 1,
            'last_failure': str(self._clock()),
            'last_error': str(error)[:200],
        })
        if opened:
            logger.warning("Circuit '%s' OPENED after %d failures: %s", self.name, failures, error)
        else:
            logger.info("Circuit '%s' failure %d/%d: %s", self.name, failures, self.failure_threshold, error)

    def reset(self):
        """Manually close the breaker."""
        self._write({'state': CLOSED, 'failures': 0, 'last_failure': ''})
        logger.info("Circuit '%s' manually reset to CLOSED", self.name)


# ── Registry ──────────────────────────────────────────────────────────────

_registry = {}


def get_breaker(name, redis_client=None, **kwargs):
    """Get or create a named breaker (one per channel)."""
    if name not in _registry:
        if redis_client is None:
            from leadcrm.extensions import redis_client as rc
            redis_client = rc
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register the breakers for every notification channel."""
    breakers = {
        'smtp': CircuitBreaker('smtp', redis_client, failure_threshold=3, reset_timeout=600),
        'slack': CircuitBreaker('slack', redis_client, failure_threshold=3, reset_timeout=300),
    }
    _registry.update(breakers)
    return breakers
