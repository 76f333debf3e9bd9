"""
Settings — immutable configuration with fluent overrides.

    settings = Settings.from_env()                 # .env + ORDERCORE_* vars
    settings = Settings().with_cod_limit(rupees(3000))
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from dotenv import load_dotenv

from ordercore._types import Paise, rupees

ENV_PREFIX = "ORDERCORE_"


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Business constants and infrastructure settings.

    Money values are paise; tax_percent is a whole percentage of subtotal.
    """

    tax_percent: int = 12
    shipping_fee: Paise = rupees(100)
    cod_limit: Paise = rupees(5000)
    delivery_days: int = 5
    max_line_quantity: int = 5
    order_prefix: str = "ORD"
    database_url: str = "sqlite+aiosqlite:///ordercore.db"
    log_level: str = "INFO"
    log_dir: str | None = None
    gateway_secret: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        if not 0 <= self.tax_percent <= 100:
            raise ValueError(f"tax_percent must be within 0..100, got {self.tax_percent}")
        if self.shipping_fee < 0 or self.cod_limit < 0:
            raise ValueError("shipping_fee and cod_limit must be non-negative")
        if self.delivery_days < 0 or self.max_line_quantity < 1:
            raise ValueError("delivery_days must be >= 0 and max_line_quantity >= 1")

    # ───────────────────────────────────────────────────────────────────────────
    # Fluent overrides
    # ───────────────────────────────────────────────────────────────────────────

    def with_tax_percent(self, percent: int) -> Settings:
        return replace(self, tax_percent=percent)

    def with_shipping_fee(self, fee: Paise) -> Settings:
        return replace(self, shipping_fee=fee)

    def with_cod_limit(self, limit: Paise) -> Settings:
        return replace(self, cod_limit=limit)

    def with_database_url(self, url: str) -> Settings:
        return replace(self, database_url=url)

    def with_log_dir(self, path: str | None) -> Settings:
        return replace(self, log_dir=path)

    # ───────────────────────────────────────────────────────────────────────────
    # Environment
    # ───────────────────────────────────────────────────────────────────────────

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Settings:
        """
        Build settings from ORDERCORE_* environment variables.

        A .env file is loaded first (existing variables win). Money
        variables are given in whole rupees.
        """
        load_dotenv(dotenv_path)
        defaults = cls()

        def _int(name: str, default: int) -> int:
            raw = os.getenv(ENV_PREFIX + name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None

        return cls(
            tax_percent=_int("TAX_PERCENT", defaults.tax_percent),
            shipping_fee=rupees(_int("SHIPPING_FEE", defaults.shipping_fee // 100)),
            cod_limit=rupees(_int("COD_LIMIT", defaults.cod_limit // 100)),
            delivery_days=_int("DELIVERY_DAYS", defaults.delivery_days),
            max_line_quantity=_int("MAX_LINE_QUANTITY", defaults.max_line_quantity),
            order_prefix=os.getenv(ENV_PREFIX + "ORDER_PREFIX", defaults.order_prefix),
            database_url=os.getenv(ENV_PREFIX + "DATABASE_URL", defaults.database_url),
            log_level=os.getenv(ENV_PREFIX + "LOG_LEVEL", defaults.log_level).upper(),
            log_dir=os.getenv(ENV_PREFIX + "LOG_DIR") or None,
            gateway_secret=os.getenv(ENV_PREFIX + "GATEWAY_SECRET", defaults.gateway_secret),
        )


__all__ = ("Settings", "ENV_PREFIX")
