"""Secure logging utilities for the case matcher.

Case reports carry personal data (reporter phone numbers and emails), so
every context dict is sanitized before it reaches the log output.
"""
import json
import logging
import re
from typing import Any

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger('casematch')


def configure_logging(level: str = "INFO", fmt: str = None) -> None:
    """Apply level and format from configuration to the package logger."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if fmt:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S'))


def sanitize_text(text: str) -> str:
    """Remove sensitive information from text.

    Args:
        text: Input text that may contain sensitive data

    Returns:
        Sanitized text with sensitive patterns replaced
    """
    if not text:
        return text

    # Email addresses
    text = re.sub(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}', '<email>', text)

    # API keys and tokens
    text = re.sub(r'sk-[a-zA-Z0-9_-]{20,}', '<api-key>', text)
    text = re.sub(r'[a-zA-Z0-9]{32,}', '<token>', text)

    # URLs (signed image links carry credentials in the query string)
    text = re.sub(r'https?://[^\s"]+', '<url>', text)

    # Phone numbers: 7+ digits with optional separators
    text = re.sub(r'\+?\(?\d[\d\s().-]{5,}\d', '<phone>', text)

    return text


def safe_json(obj: Any, max_length: int = 1000) -> str:
    """Safely serialize object to JSON with sensitive data sanitized.

    Args:
        obj: Object to serialize
        max_length: Maximum length of output string

    Returns:
        Sanitized JSON string
    """
    try:
        json_str = json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return "<unable to serialize>"

    sanitized = sanitize_text(json_str)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "... [truncated]"
    return sanitized


def log_info(message: str, **kwargs) -> None:
    """Log info message with optional sanitized context."""
    if kwargs:
        logger.info(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.info(message)


def log_warning(message: str, **kwargs) -> None:
    """Log warning message with optional sanitized context."""
    if kwargs:
        logger.warning(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.warning(message)


def log_error(message: str, **kwargs) -> None:
    """Log error message with optional sanitized context."""
    if kwargs:
        logger.error(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.error(message)


def log_debug(message: str, **kwargs) -> None:
    """Log debug message with optional sanitized context."""
    if kwargs:
        logger.debug(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.debug(message)


def log_match_result(existing_case_id: Any, result: Any) -> None:
    """Log a compact summary of one case comparison.

    Args:
        existing_case_id: Id of the stored case the draft was compared with
        result: ``MatchResult`` of the comparison
    """
    failed = [name for name, outcome in result.outcomes().items() if outcome.failed]
    log_info(
        "Case comparison finished",
        existing_case_id=existing_case_id,
        overall=round(result.overall_similarity, 4),
        text=round(result.physical_match, 4),
        image=round(result.distinctive_feature_match, 4),
        contact=round(result.contact_match, 4),
        image_compared=result.image_compared,
        failed_comparisons=failed,
    )
