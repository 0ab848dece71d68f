"""Prometheus metrics instrumentation."""

from prometheus_fastapi_instrumentator import Instrumentator
from fastapi import FastAPI


def setup_monitoring(app: FastAPI) -> Instrumentator:
    """Instrument HTTP handlers and expose ``/metrics``.

    Set ``ENABLE_METRICS=true`` to turn collection on; health probes and the
    metrics endpoint itself are not counted.
    """
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/health", "/favicon.ico"],
        env_var_name="ENABLE_METRICS",
        inprogress_name="acquisitions_http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
    return instrumentator
