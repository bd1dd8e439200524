"""
HTTP Dose Dispatcher
POSTs dose commands straight to an actuator gateway
"""

import logging
from typing import Optional

import httpx

from pooldose.config import settings
from pooldose.domain.models import DoseDirection

logger = logging.getLogger(__name__)


class HttpDoseDispatcher:
    """
    Dispatch over HTTP

    Any transport error, timeout or non-2xx answer counts as a failed
    dispatch. Errors are reported through the return value, never raised.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.ACTUATOR_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ACTUATOR_TIMEOUT_SECONDS
        self.transport = transport

    async def dispatch_dose(
        self,
        pool_id: str,
        product: DoseDirection,
        duration_seconds: int,
    ) -> bool:
        url = f"{self.base_url}/pools/{pool_id}/dose"
        payload = {
            "product": DoseDirection(product).value,
            "duration": duration_seconds,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
        except httpx.TimeoutException:
            logger.error(f"Actuator timeout for pool {pool_id} after {self.timeout}s")
            return False
        except httpx.HTTPStatusError as exc:
            logger.error(
                f"Actuator rejected dose for pool {pool_id}: HTTP {exc.response.status_code}"
            )
            return False
        except httpx.HTTPError as exc:
            logger.error(f"Actuator unreachable for pool {pool_id}: {exc}")
            return False

        logger.info(f"Actuator accepted {payload['product']} for {duration_seconds}s on pool {pool_id}")
        return True
