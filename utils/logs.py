import datetime
import json
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("spellbee.events")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def log_structured(event: str, level: int = logging.INFO, **fields) -> None:
    payload = {
        "event": event,
        "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds"),
    }
    payload.update(fields)
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
