from .ledger_rpc_client import LedgerQueryError, LedgerRpcClient
from .openrouter_client import ClassificationFailure, OpenRouterClient

__all__ = ['LedgerQueryError', 'LedgerRpcClient', 'ClassificationFailure', 'OpenRouterClient']
