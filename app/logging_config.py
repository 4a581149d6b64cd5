import json, logging, os, sys
from datetime import datetime, timezone

# Structured fields the offline client attaches through `extra=`
EXTRA_FIELDS = (
    "record_id",      # verification log id (append, sync)
    "credential_id",  # DID cache / revocation lookups
    "error_code",     # OfflineError.code
    "online",         # connectivity transitions
    "route",
    "remote_addr",
)

# Chatty third-party loggers; httpx logs every remote call at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with epoch-ms `ts_ms` alongside ISO `ts`.

    `ts_ms` uses the same clock unit as verification log timestamps, so log
    lines can be matched against stored records.
    """

    def format(self, record):
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "ts_ms": int(record.created * 1000),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in EXTRA_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging():
    """Install stdout and (optional) file handlers on the root logger.

    OVL_LOG_FILE sets the append-mode log file kept for offline inspection;
    an empty value disables it. OVL_LOG_LEVEL sets the root level.
    """
    formatter = JsonFormatter()
    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    log_file = os.getenv("OVL_LOG_FILE", "offline_verify.log")
    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root = logging.getLogger()
    log_level = os.getenv("OVL_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers = handlers

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
