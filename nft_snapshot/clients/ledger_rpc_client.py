import logging
from typing import Any, Dict, Optional

import requests

from ..config import Config

logger = logging.getLogger(__name__)


class LedgerQueryError(Exception):
    """A ledger_data query failed; the scan cannot continue from a partial state."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        self.message = message
        super().__init__(f'{code}: {message}' if code else message)


class LedgerRpcClient:
    """JSON-RPC transport for the ledger node (rippled-style `{"method", "params": [...]}` envelope)."""

    def __init__(self, rpc_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.rpc_url = rpc_url or Config.LEDGER_RPC_URL
        if not self.rpc_url:
            raise ValueError('LEDGER_RPC_URL is not set in the environment.')
        self.timeout = timeout if timeout is not None else Config.LEDGER_RPC_TIMEOUT_SECONDS
        self._session = session or requests.Session()

    def _post(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = {'method': method, 'params': [params]}
        try:
            resp = self._session.post(
                self.rpc_url,
                json=payload,
                timeout=self.timeout,
                headers={'Content-Type': 'application/json'},
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.exceptions.RequestException as e:
            raise LedgerQueryError(f'{method} request failed: {e}', code='transport') from e
        except ValueError as e:
            raise LedgerQueryError(f'{method} returned a non-JSON body: {e}', code='invalid_response') from e

        result = body.get('result') if isinstance(body, dict) else None
        if not isinstance(result, dict):
            raise LedgerQueryError(f'{method} response has no result object', code='invalid_response')
        if result.get('error') or result.get('status') == 'error':
            code = result.get('error') or 'error'
            raise LedgerQueryError(result.get('error_message') or code, code=code)
        return result

    def ledger_data_nft_page(self, limit: int, marker: Any = None) -> Dict[str, Any]:
        """
        Fetch one page of NFTokenPage objects from the latest validated ledger.

        Args:
            limit: Server-side page size hint
            marker: Opaque cursor from the previous page, passed back verbatim

        Returns:
            The `result` object (`state`, optional `marker`)

        Raises:
            LedgerQueryError: On transport failure or an error reported by the node
        """
        params: Dict[str, Any] = {'type': 'nft_page', 'limit': limit, 'ledger_index': 'validated'}
        if marker is not None:
            params['marker'] = marker
        return self._post('ledger_data', params)
