"""
Client for the external damage backend.

    GET {DAMAGE_ENDPOINT}/vehicle/{id}
    Authorization: Basic <credential>
    -> 200 {"damaged": true|false}

Any failure (non-2xx, timeout, transport error, malformed body) is mapped by the
service-level classifier to HttpError(503). Calls are never retried here.
"""

import logging
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, StrictBool, ValidationError

from ...config.settings import Settings
from ...exceptions.mapper import handle_service_errors

logger = logging.getLogger(__name__)


class DamageStateResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    damaged: StrictBool


def build_damage_client(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Shared AsyncClient for the damage backend.

    `transport` lets tests plug in an `httpx.MockTransport`.
    """
    return httpx.AsyncClient(
        base_url=settings.DAMAGE_ENDPOINT,
        timeout=httpx.Timeout(settings.DAMAGE_REQUEST_TIMEOUT_SECONDS),
        headers={"Accept": "application/json"},
        transport=transport,
    )


class DamageService:
    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.settings = settings

    async def get_damage_state(self, vehicle_id: str) -> bool:
        """
        Return whether the vehicle with `vehicle_id` is damaged.

        Raises:
            HttpError(503): on any backend failure.
        """
        try:
            response = await self.client.get(
                f"/vehicle/{quote(vehicle_id, safe='')}",
                headers={"Authorization": self.settings.AUTHORIZATION_HEADER},
                timeout=self.settings.DAMAGE_REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            state = DamageStateResponse.model_validate_json(response.content)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "damage.backend.bad_status",
                extra={"vehicle_id": vehicle_id, "status_code": exc.response.status_code},
            )
            handle_service_errors(exc)
        except httpx.TimeoutException as exc:
            logger.warning("damage.backend.timeout", extra={"vehicle_id": vehicle_id})
            handle_service_errors(exc)
        except httpx.HTTPError as exc:
            logger.warning(
                "damage.backend.transport_error",
                extra={"vehicle_id": vehicle_id, "error_type": type(exc).__name__},
            )
            handle_service_errors(exc)
        except ValidationError as exc:
            logger.warning("damage.backend.invalid_body", extra={"vehicle_id": vehicle_id})
            handle_service_errors(exc)

        logger.debug("damage.backend.success", extra={"vehicle_id": vehicle_id, "damaged": state.damaged})
        return state.damaged
