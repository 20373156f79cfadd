from dotenv import load_dotenv
import logging
load_dotenv()

from . import config
from . import services
from .claim_server import ClaimServer

if config.APP_ENV == 'prod':
    log_level = logging.WARNING
    log_level_name = 'WARNING'
else:
    # dev
    log_level = logging.INFO
    log_level_name = 'INFO'

logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)
logger.info(f"Logging level set to {log_level_name} based on APP_ENV='{config.APP_ENV}'")


def build_server() -> ClaimServer:
    use_mysql = config.CLAIM_BITMAP_BACKEND == 'mysql'
    return ClaimServer(
        services.airdrop,
        cors_origins=config.CORS_ORIGINS,
        cors_methods=config.CORS_METHODS,
        cors_headers=config.CORS_HEADERS,
        cors_credentials=config.CORS_CREDENTIALS,
        db_connector=services.db_connector if use_mysql else None,
        bitmap_repository=services.repo_claim_bitmap if use_mysql else None,
    )


def main():
    server = build_server()
    server.run(host=config.APP_HOST, port=config.APP_PORT)


if __name__ == "__main__":
    main()
