import logging
import re
import sys
from contextvars import ContextVar

DOMAIN_MAPPING = "mapping"
DOMAIN_GENERATION = "generation"
DOMAIN_TRANSFORM = "transform"
DOMAIN_EVALUATION = "evaluation"
DOMAIN_BATCH = "batch"
DOMAIN_ORACLE = "oracle"

LOG_FORMAT = "%(asctime)s | %(levelname)s | [%(domain)s] | req=%(request_id)s | %(name)s | %(message)s"

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


def get_domain_logger(name: str, domain: str) -> logging.LoggerAdapter:
    """Logger whose records carry ``domain`` so mapping, generation and batch output can be told apart."""
    return logging.LoggerAdapter(logging.getLogger(name), {"domain": domain})


class RecordContextFilter(logging.Filter):
    """Fill in ``domain`` and ``request_id`` so the format string works for every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "domain"):
            record.domain = "app"  # type: ignore[attr-defined]
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


_REDACTIONS = (
    re.compile(r"(?i)(x-goog-api-key\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(?i)(api[_-]?key\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(?i)([?&]key=)([^&\s]+)"),
    re.compile(r"(?i)(authorization\s*[=:]\s*bearer\s+)([^\s,;]+)"),
    re.compile(r"(?i)(token\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(?i)(password\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(mongodb(?:\+srv)?://)([^/@\s]+)(?=@)"),
    re.compile(r"(\b)(sk-[A-Za-z0-9_\-]{8,})"),
)


def redact_secrets(message: str) -> str:
    text = str(message or "")
    for pattern in _REDACTIONS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class SecretRedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_secrets(record.getMessage())
        record.args = ()
        return True


class HealthProbeFilter(logging.Filter):
    """Keep successful ``GET /health`` probes out of the uvicorn access log."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not ("GET /health" in message and " 200" in message)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RecordContextFilter())
    handler.addFilter(SecretRedactionFilter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [handler]

    # Provider URLs and driver chatter stay out of INFO output.
    for noisy in ("httpx", "httpcore", "pymongo"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").addFilter(HealthProbeFilter())
