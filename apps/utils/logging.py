import datetime
import json
import logging


class JSONFormatter(logging.Formatter):
    """
    One JSON object per log line. Sensitive keys are redacted recursively,
    and order/actor context passed via `extra=` is lifted to the top level.
    """

    SENSITIVE_KEYS = {
        'password', 'token', 'access', 'refresh',
        'secret', 'authorization', 'signature', 'customer_phone', 'phone',
    }

    CONTEXT_FIELDS = ('order_id', 'user_id', 'actor_role', 'outlet_id', 'status')

    def _scrub(self, data):
        if isinstance(data, dict):
            return {
                k: '***REDACTED***' if str(k).lower() in self.SENSITIVE_KEYS else self._scrub(v)
                for k, v in data.items()
            }
        if isinstance(data, (list, tuple)):
            return [self._scrub(i) for i in data]
        return data

    def format(self, record):
        if isinstance(record.msg, dict):
            record.msg = self._scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = self._scrub(record.args)

        log_record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "lvl": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "line": record.lineno,
        }

        for field in self.CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)

        if record.exc_info:
            log_record['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)
