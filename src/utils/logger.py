import sys

from loguru import logger

from config.settings import settings

REDACTED = "***"


def _redact_secrets(record: dict) -> None:
    # Upstream errors can echo request URLs that carry the GoldRush key.
    key = settings.goldrush_api_key
    if key and key in record["message"]:
        record["message"] = record["message"].replace(key, REDACTED)


def setup_logger(*, json_logs: bool | None = None, level: str | None = None) -> None:
    """Configure loguru for the analytics service.

    Console level and format come from settings (LOG_LEVEL / LOG_JSON)
    unless overridden. The rotating file always captures DEBUG.
    """
    json_logs = settings.log_json if json_logs is None else json_logs
    console_level = (level or settings.log_level).upper()
    logger.remove()
    logger.configure(patcher=_redact_secrets)

    if json_logs:
        logger.add(sys.stdout, serialize=True, level=console_level)
    else:
        logger.add(
            sys.stdout,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan> - "
                "<level>{message}</level>"
            ),
            level=console_level,
            colorize=True,
        )

    logger.add(
        f"{settings.log_dir}/wallet_analytics_{{time:YYYY-MM-DD}}.log",
        rotation="50 MB",
        retention="7 days",
        compression="gz",
        level="DEBUG",
        serialize=json_logs,
    )
