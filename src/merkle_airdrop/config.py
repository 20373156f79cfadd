import os


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# --- App ---
APP_ENV = os.getenv('APP_ENV', 'dev')
APP_HOST = os.getenv('APP_HOST', '0.0.0.0')
APP_PORT = int(os.getenv('APP_PORT', '8000'))

# --- CORS ---
CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
CORS_METHODS = os.getenv('CORS_METHODS', 'GET,POST')
CORS_HEADERS = os.getenv('CORS_HEADERS', '*')
CORS_CREDENTIALS = _get_bool('CORS_CREDENTIALS', False)

# --- Airdrop ---
# Immutable for the lifetime of the process.
AIRDROP_MERKLE_ROOT = os.getenv('AIRDROP_MERKLE_ROOT', '0x' + '00' * 32)
AIRDROP_TOKEN_ADDRESS = os.getenv('AIRDROP_TOKEN_ADDRESS', '0x' + '00' * 19 + '01')
AIRDROP_ADDRESS = os.getenv('AIRDROP_ADDRESS', '0x' + '00' * 19 + '02')
# Seed balance of the airdrop account on the in-memory ledger.
AIRDROP_TOKEN_SUPPLY = int(os.getenv('AIRDROP_TOKEN_SUPPLY', '0'))
# False = relayed mode: anyone may submit, tokens go to the credential's beneficiary.
AIRDROP_BIND_CALLER = _get_bool('AIRDROP_BIND_CALLER', True)

# 'memory' or 'mysql'
CLAIM_BITMAP_BACKEND = os.getenv('CLAIM_BITMAP_BACKEND', 'memory')
# 'system' or 'etherscan'
CLOCK_BACKEND = os.getenv('CLOCK_BACKEND', 'system')

# --- MySQL ---
MYSQL_HOST = os.getenv('MYSQL_HOST', '127.0.0.1')
MYSQL_PORT = int(os.getenv('MYSQL_PORT', '3306'))
MYSQL_USER = os.getenv('MYSQL_USER', 'root')
MYSQL_PASSWORD = os.getenv('MYSQL_PASSWORD', '')
MYSQL_DB = os.getenv('MYSQL_DB', 'merkle_airdrop')
MYSQL_POOL_MINSIZE = int(os.getenv('MYSQL_POOL_MINSIZE', '1'))
MYSQL_POOL_MAXSIZE = int(os.getenv('MYSQL_POOL_MAXSIZE', '10'))

# --- Etherscan block clock ---
ETHERSCAN_API_URL = os.getenv('ETHERSCAN_API_URL', 'https://api.etherscan.io/v2/api')
ETHERSCAN_API_KEY = os.getenv('ETHERSCAN_API_KEY', '')
ETHERSCAN_CHAIN_ID = int(os.getenv('ETHERSCAN_CHAIN_ID', '8453'))
ETHERSCAN_API_TIMEOUT = int(os.getenv('ETHERSCAN_API_TIMEOUT', '15'))
ETHERSCAN_API_REQUEST_DELAY = float(os.getenv('ETHERSCAN_API_REQUEST_DELAY', '0.25'))
ETHERSCAN_API_PROXY_URL = os.getenv('ETHERSCAN_API_PROXY_URL') or None
