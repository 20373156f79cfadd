import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from .clock import AbstractClock

logger = logging.getLogger(__name__)


class EtherscanAPIError(Exception):
    """Custom exception for all Etherscan API errors."""
    pass


class EtherscanBlockClock(AbstractClock):
    """
    Reads "now" from the latest block timestamp via the Etherscan v2 proxy API,
    so off-chain pre-flight checks see the same time a claim transaction would.
    """

    def __init__(self,
                 base_url: str,
                 api_key: str,
                 chain_id: int,
                 delay_seconds: float = 0.25,
                 lock: Optional[asyncio.Lock] = None,
                 timeout: int = 15,
                 proxy_url: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None):

        self._base_url = base_url
        self._api_key = api_key
        self._chain_id = chain_id
        self._delay = delay_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout, proxy=proxy_url or None)
        self._last_request_time = 0.0
        self._lock = lock or asyncio.Lock()

    async def _throttle(self):
        """Keeps at least `delay_seconds` between calls sharing the lock."""
        elapsed = asyncio.get_running_loop().time() - self._last_request_time
        if elapsed < self._delay:
            await asyncio.sleep(self._delay - elapsed)
        self._last_request_time = asyncio.get_running_loop().time()

    async def _rpc(self, action: str, **params: Any) -> Any:
        """
        Proxy-module call. Returns the JSON-RPC `result`; a non-200 reply,
        an Etherscan status "0", a JSON-RPC `error` or a network failure
        all surface as EtherscanAPIError.
        """
        query = {'module': 'proxy', 'action': action, **params,
                 'chainid': self._chain_id, 'apikey': self._api_key}
        async with self._lock:
            await self._throttle()
            try:
                response = await self._client.get(self._base_url, params=query)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                logger.error(f"HTTP error for {e.request.url}: {e.response.status_code} - {e.response.text}")
                raise EtherscanAPIError(f"HTTP error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                logger.error(f"Network error for {e.request.url}: {e}")
                raise EtherscanAPIError(f"Network error: {e}") from e
            except json.JSONDecodeError as e:
                logger.error(f"Failed to decode JSON response: {e}")
                raise EtherscanAPIError(f"JSON decode error: {e}") from e

        if data.get('status') == '0':
            logger.warning(f"Etherscan rejected {action}: {data.get('message')} - {data.get('result')}")
            raise EtherscanAPIError(f"Etherscan API Error: {data.get('message')} - {data.get('result')}")
        if 'error' in data:
            raise EtherscanAPIError(f"JSON-RPC error in {action}: {data['error']}")
        if 'result' not in data:
            raise EtherscanAPIError(f"Invalid API response: 'result' not in data. Response: {data}")
        return data['result']

    async def now(self) -> int:
        block = await self._rpc("eth_getBlockByNumber", tag="latest", boolean="false")
        if not isinstance(block, dict) or 'timestamp' not in block:
            raise EtherscanAPIError(f"Latest block has no timestamp: {block}")
        try:
            return int(block['timestamp'], 16)
        except (TypeError, ValueError) as e:
            raise EtherscanAPIError(f"Invalid block timestamp: {block['timestamp']}") from e

    async def aclose(self):
        await self._client.aclose()
