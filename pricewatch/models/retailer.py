"""
Retailer configuration model.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class RetailerConfig:
    """
    Extraction configuration for one retailer.

    Selector tuples are ordered by priority: the first candidate that
    yields text wins. Empty tuples fall back to the generic selectors.
    """
    domain: str
    name: str
    price_selectors: Tuple[str, ...] = ()
    sale_price_selectors: Tuple[str, ...] = ()
    availability_selectors: Tuple[str, ...] = ()
    requires_js_rendering: bool = False
    requires_anti_bot_bypass: bool = False
    is_json_backdoor_eligible: bool = False
    user_agent: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        if not self.domain or not self.domain.strip():
            raise ValueError("Retailer domain is required")
        object.__setattr__(self, "domain", self.domain.strip().lower())
        if not self.name:
            object.__setattr__(self, "name", self.domain)
        for attr in ("price_selectors", "sale_price_selectors", "availability_selectors"):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetailerConfig":
        """
        Build a config from a retailers.yaml entry.

        Example entry:
            domain: footlocker.com
            name: Foot Locker
            selectors:
              price: ['[data-test="product-price"]', '.ProductPrice']
              availability: ['.ProductAvailability']
            requires_js_rendering: false
        """
        selectors = data.get("selectors") or {}
        return cls(
            domain=data.get("domain", ""),
            name=data.get("name", ""),
            price_selectors=tuple(selectors.get("price") or ()),
            sale_price_selectors=tuple(selectors.get("sale_price") or ()),
            availability_selectors=tuple(selectors.get("availability") or ()),
            requires_js_rendering=bool(data.get("requires_js_rendering", False)),
            requires_anti_bot_bypass=bool(data.get("requires_anti_bot_bypass", False)),
            is_json_backdoor_eligible=bool(data.get("is_json_backdoor_eligible", False)),
            user_agent=data.get("user_agent"),
            metadata={k: v for k, v in data.items() if k in ("test_url", "support_level")},
        )
