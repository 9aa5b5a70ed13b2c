"""Checkout settings, read once from the domain's `[custom]` configuration table.

Secrets may be overridden from the environment so they never need to live
in `domain.toml`:

    CHECKOUT_GATEWAY_KEY_ID
    CHECKOUT_GATEWAY_KEY_SECRET
"""

import os
from dataclasses import dataclass, fields, replace


@dataclass(frozen=True)
class CheckoutSettings:
    gateway: str = "fake"
    gateway_key_id: str = ""
    gateway_key_secret: str = ""
    gateway_base_url: str = "https://api.razorpay.com/v1"
    gateway_timeout: float = 10.0
    currency: str = "INR"
    minor_unit_factor: int = 100
    dispatcher_workers: int = 4

    @classmethod
    def from_mapping(cls, values: dict) -> "CheckoutSettings":
        known = {f.name: values[f.name] for f in fields(cls) if values.get(f.name) is not None}
        return cls(**known).with_environment_overrides()

    @classmethod
    def from_domain(cls, domain) -> "CheckoutSettings":
        """Build settings from `domain.config["custom"]`, falling back to defaults."""
        custom = domain.config.get("custom") or {}
        return cls.from_mapping(dict(custom))

    def with_environment_overrides(self) -> "CheckoutSettings":
        overrides = {}
        key_id = os.environ.get("CHECKOUT_GATEWAY_KEY_ID")
        key_secret = os.environ.get("CHECKOUT_GATEWAY_KEY_SECRET")
        if key_id:
            overrides["gateway_key_id"] = key_id
        if key_secret:
            overrides["gateway_key_secret"] = key_secret
        if not overrides:
            return self
        return replace(self, **overrides)

    def to_minor_units(self, amount: int) -> int:
        """Convert an integer currency amount to the gateway's smallest unit."""
        return int(amount) * self.minor_unit_factor
