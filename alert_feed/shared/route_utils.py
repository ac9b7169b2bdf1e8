import uuid
from loguru import logger


def extract_client_id(client_id: str | None) -> str:
    """
    If the caller provided a client_id, use it.
    If not, generate a short readable one like 'client-a3f2'.
    This keeps anonymous connections distinguishable in logs.
    """
    if client_id:
        return client_id
    return f"client-{str(uuid.uuid4())[:4]}"


def log_connection(event: str, client_id: str, extra: dict | None = None) -> None:
    """
    Single structured log entry for a connection lifecycle event.
    Writes: client_id, event, and any extra fields as key=value pairs.
    """
    log_str = f"client_id={client_id} event={event}"
    for k, v in (extra or {}).items():
        log_str += f" {k}={v}"
    logger.info(log_str)
