import logging
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from admitlayer.domain.models import AdmissionRequest


def configure_logging(
    level: int | str = logging.INFO,
    *,
    component: str | None = None,
    json: bool = True,
) -> None:
    """Configure structlog on top of the stdlib logging bridge.

    ``component`` is stamped onto every record so webhook and background
    controller logs can be told apart once they land in the same sink.
    """

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if component:
        processors.append(_add_component(component))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def _add_component(component: str) -> Any:
    def processor(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("component", component)
        return event_dict

    return processor


def bind_admission_context(request: "AdmissionRequest") -> None:
    """Bind the admission request identity into contextvars for this task."""

    structlog.contextvars.bind_contextvars(
        uid=request.uid,
        kind=request.kind.kind,
        namespace=request.namespace,
        name=request.name,
        operation=request.operation,
    )
