import logging

_HEALTH_PATHS: tuple[str, ...] = ("/healthz", "/readyz")


class HealthEndpointFilter(logging.Filter):
    """Drop successful health probe lines from access logs.

    Failed probes (anything but 200) are kept so readiness flaps stay visible.
    """

    def __init__(self, paths: tuple[str, ...] = _HEALTH_PATHS) -> None:
        super().__init__()
        self.paths = paths

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if any(path in message for path in self.paths):
            return " 200 " not in message
        return True
