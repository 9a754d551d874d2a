import logging
from config.settings import Settings

logger = logging.getLogger(__name__)

def validate_env_variables(settings: Settings) -> bool:
    """Warn about missing Tripay credentials; the server still starts without them"""
    required_vars = {
        'TRIPAY_API_KEY': settings.TRIPAY_API_KEY,
        'TRIPAY_PRIVATE_KEY': settings.TRIPAY_PRIVATE_KEY,
        'TRIPAY_MERCHANT_CODE': settings.TRIPAY_MERCHANT_CODE,
    }

    missing_vars = [name for name, value in required_vars.items() if not value]

    if missing_vars:
        logger.warning(f"Tripay credentials not configured: {', '.join(missing_vars)}")
        logger.warning("Please set TRIPAY_API_KEY, TRIPAY_PRIVATE_KEY, and TRIPAY_MERCHANT_CODE in .env file")
        return False

    logger.info("All Tripay credentials are set")
    return True
