import logging
import os
from dotenv import load_dotenv
load_dotenv()


class ConfigError(ValueError):
    """Raised when the environment does not describe a runnable pipeline."""
    pass


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Ledger JSON-RPC (data source)
    LEDGER_RPC_URL = os.getenv('LEDGER_RPC_URL', 'https://rpc.testnet.postfiat.org/')
    LEDGER_PAGE_LIMIT = int(os.getenv('LEDGER_PAGE_LIMIT', '400'))
    LEDGER_RPC_TIMEOUT_SECONDS = float(os.getenv('LEDGER_RPC_TIMEOUT_SECONDS', '30'))

    # Off-chain content resolution
    IPFS_GATEWAY = os.getenv('IPFS_GATEWAY', 'https://ipfs.io/ipfs/')
    FETCH_TIMEOUT_SECONDS = float(os.getenv('FETCH_TIMEOUT_SECONDS', '10'))
    RESOLVE_BATCH_SIZE = int(os.getenv('RESOLVE_BATCH_SIZE', '5'))

    # Colour tagging (OpenRouter vision model)
    OPENROUTER_API_KEY = os.getenv('OPENROUTER_API_KEY')
    OPENROUTER_URL = os.getenv('OPENROUTER_URL', 'https://openrouter.ai/api/v1/chat/completions')
    OPENROUTER_MODEL = os.getenv('OPENROUTER_MODEL', 'anthropic/claude-3-5-haiku')
    OPENROUTER_REFERER = os.getenv('OPENROUTER_REFERER', 'https://jollydinger.com')
    OPENROUTER_TITLE = os.getenv('OPENROUTER_TITLE', 'JollyDinger NFT Color Tagger')
    CLASSIFY_TIMEOUT_SECONDS = float(os.getenv('CLASSIFY_TIMEOUT_SECONDS', '60'))
    CLASSIFY_MAX_TOKENS = int(os.getenv('CLASSIFY_MAX_TOKENS', '20'))
    COLOR_BATCH_SIZE = int(os.getenv('COLOR_BATCH_SIZE', '5'))

    # Output files
    SNAPSHOT_PATH = os.getenv('SNAPSHOT_PATH', 'nft-data.json')
    COLOR_CACHE_PATH = os.getenv('COLOR_CACHE_PATH', 'nft-colors.json')

    # Malformed NFTokenIDs are skipped unless this is set, in which case the run aborts
    ABORT_ON_MALFORMED_ID = _env_bool('ABORT_ON_MALFORMED_ID')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Constants
    COLOR_VOCABULARY = ('red', 'blue', 'green', 'white', 'black')

    @classmethod
    def validate(cls):
        missing = [field for field in ('LEDGER_RPC_URL', 'IPFS_GATEWAY') if not getattr(cls, field)]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")
        for field in ('LEDGER_PAGE_LIMIT', 'RESOLVE_BATCH_SIZE', 'COLOR_BATCH_SIZE'):
            if getattr(cls, field) <= 0:
                raise ConfigError(f'{field} must be a positive integer')
        return True

    @classmethod
    def require_openrouter(cls) -> str:
        if not cls.OPENROUTER_API_KEY:
            raise ConfigError('OPENROUTER_API_KEY env var is required for color tagging')
        return cls.OPENROUTER_API_KEY


def setup_logging(level: str = None):
    logging.basicConfig(
        level=getattr(logging, (level or Config.LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    # urllib3 logs every pooled connection at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)


Config.validate()
