import logging
from typing import Any, Dict, MutableMapping, Tuple

LOGGING_KEY_ACTION = "action"


class FieldLogger(logging.LoggerAdapter):
    """LoggerAdapter that appends its fields to every message as key=value."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = " ".join(f"{k}={v}" for k, v in self.extra.items())
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"{msg} [{fields}]", kwargs

    def with_fields(self, **fields: Any) -> "FieldLogger":
        merged: Dict[str, Any] = dict(self.extra)
        merged.update(fields)
        return FieldLogger(self.logger, merged)


def new_controller_logger(name: str, controller: str) -> FieldLogger:
    return FieldLogger(logging.getLogger(name), {"controller": controller})


def new_action_logger(logger: FieldLogger, action: str) -> FieldLogger:
    return logger.with_fields(**{LOGGING_KEY_ACTION: action})
