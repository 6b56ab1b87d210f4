import logging
from typing import Optional, Dict
from contextlib import contextmanager

from opentelemetry.trace import Tracer

from origin_proxy.utils import mask_url_credentials

logger = logging.getLogger("uvicorn.error")


@contextmanager
def traced_request(
    tracer: Tracer,
    operation: str,
    method: str,
    target_url: Optional[str],
    start_message: str,
    extra_attrs: Optional[Dict] = None,
):
    """Context manager to create a span, set common proxy attributes, and log a start message."""
    with tracer.start_as_current_span(operation) as span:
        span.set_attribute("proxy.method", method)
        if target_url:
            span.set_attribute("proxy.target_url", mask_url_credentials(target_url))
        if extra_attrs:
            for k, v in extra_attrs.items():
                span.set_attribute(k, v)
        logger.debug(mask_url_credentials(start_message))
        yield span
