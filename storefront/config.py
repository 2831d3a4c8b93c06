import os
import logging

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

ADMIN_KEY = os.getenv("ADMIN_KEY", "demo-admin-key")

SHIPPING_FLAT_FEE = os.getenv("SHIPPING_FLAT_FEE", "9.99")
TAX_RATE = os.getenv("TAX_RATE", "0.08")
CURRENCY = os.getenv("CURRENCY", "usd")

COMPARE_LIMIT = 2

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
