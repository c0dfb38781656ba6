import logging
import re

from opentelemetry import trace
from pythonjsonlogger import jsonlogger

from pseudoidc.config import config

# Query parameters that must never reach a log line.
SENSITIVE_QUERY_PARAMS = ("code", "state", "nonce", "code_verifier", "access_token")
_SENSITIVE_QUERY_RE = re.compile(
    r"(?P<key>[?&](?:%s)=)[^&\s\"]*" % "|".join(SENSITIVE_QUERY_PARAMS)
)


def redact_query(text: str) -> str:
    return _SENSITIVE_QUERY_RE.sub(r"\g<key>[REDACTED]", text)


class RedactQueryFilter(logging.Filter):
    """Scrubs authorization codes and state values out of logged URLs (access logs)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_query(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        if isinstance(record.msg, str):
            record.msg = redact_query(record.msg)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    service_name: str

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            log_record["trace_id"] = format(span_context.trace_id, "032x")
            log_record["span_id"] = format(span_context.span_id, "016x")
            log_record["trace_flags"] = format(span_context.trace_flags, "02x")

        if not log_record.get("service"):
            resource = getattr(trace.get_tracer_provider(), "resource", None)
            self.service_name = (
                resource.attributes.get("service.name", "pseudoidc-auth")
                if resource
                else "pseudoidc-auth"
            )
            log_record["service"] = self.service_name
        log_record["severity"] = record.levelname
        log_record["timestamp"] = self.formatTime(record)


def configure_logger():
    """Configure the root logger with JSON formatting and trace context"""
    logger = logging.getLogger()
    if config.debug_mode:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.addFilter(RedactQueryFilter())

    if config.debug_mode:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CustomJsonFormatter(
            "%(timestamp)s %(service)s %(severity)s %(name)s %(message)s"
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # uvicorn and FastAPI go through the root handler, and its redaction
    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "fastapi"]:
        named_logger = logging.getLogger(logger_name)
        named_logger.handlers = []
        named_logger.propagate = True

    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger
