import logging

from gym_posture.client.cache import TTLCache
from gym_posture.client.http import ApiClient, parse_response
from gym_posture.schemas.customer import CustomerResponse

logger = logging.getLogger(__name__)


class OptionsService:
    """Form options (customers) loaded once and reused until the cache expires."""

    def __init__(self, api: ApiClient, cache: TTLCache[list[CustomerResponse]] | None = None):
        self.api = api
        self.cache = cache or TTLCache()

    async def _load_customers(self) -> list[CustomerResponse]:
        raw = await self.api.get("/customers")
        customers = parse_response(list[CustomerResponse], raw)
        logger.debug("Loaded %d customer options", len(customers))
        return customers

    async def customers(self) -> list[CustomerResponse]:
        return await self.cache.get(self._load_customers)

    async def refresh(self) -> list[CustomerResponse]:
        self.cache.invalidate()
        return await self.customers()
