import logging
import sys


class _SafeExtraFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.replica = getattr(record, "replica", "-")
        record.node_id = getattr(record, "node_id", "-")
        record.seq = getattr(record, "seq", "-")
        return super().format(record)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    formatter = _SafeExtraFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s replica=%(replica)s node_id=%(node_id)s seq=%(seq)s",
    )
    handler.setFormatter(formatter)

    root.setLevel(level.upper())
    root.addHandler(handler)
