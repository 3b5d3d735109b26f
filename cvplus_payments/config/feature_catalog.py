"""
Premium feature catalogue loader.

Loads the static feature catalogue, tier ordering, pricing and lifetime
grant from config/premium_features.yml.

Consumers:
  - EntitlementResolver: feature requirements and minimum tiers
  - PaymentService: PREMIUM pricing, Stripe price ids, lifetime grant

Usage:
    from cvplus_payments.config.feature_catalog import get_feature_catalog

    catalog = get_feature_catalog()
    catalog.get_minimum_tier("aiChat")   # "pro"
    catalog.get_price_in_cents("PREMIUM")  # 4900
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "premium_features.yml"

DEFAULT_TIER_ORDER = ["free", "basic", "pro", "enterprise"]


@dataclass(frozen=True)
class FeatureDefinition:
    """Static catalogue entry for a premium feature."""

    feature_id: str
    display_name: str
    requires_subscription: bool
    minimum_tier: str


@dataclass(frozen=True)
class TierPricing:
    """Pricing for a purchasable tier."""

    tier: str
    name: str
    description: str
    price_dollars: Decimal
    currency: str
    stripe_price_ids: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LifetimeGrant:
    """What a lifetime purchase entitles the buyer to."""

    plan_id: str
    features: List[str]

    def feature_flags(self) -> Dict[str, bool]:
        return {feature: True for feature in self.features}


@dataclass
class PricingValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class FeatureCatalog:
    """
    Read-only view over the premium feature catalogue.

    The catalogue is immutable for the life of the process.
    """

    def __init__(self, config_path: Optional[str] = None, raw: Optional[Dict[str, Any]] = None):
        if raw is None:
            raw = self._read(Path(config_path) if config_path else DEFAULT_CONFIG_PATH)

        self._tiers: List[str] = list(raw.get("tiers") or DEFAULT_TIER_ORDER)
        if self._tiers != DEFAULT_TIER_ORDER:
            # Access checks always compare against the fixed ordering
            logger.warning(
                "Catalogue tiers differ from the fixed ordering and are ignored: %s",
                self._tiers,
            )
        self._features: Dict[str, FeatureDefinition] = {}
        for feature_id, entry in (raw.get("features") or {}).items():
            entry = entry or {}
            self._features[feature_id] = FeatureDefinition(
                feature_id=feature_id,
                display_name=entry.get("display_name", feature_id),
                requires_subscription=bool(entry.get("requires_subscription", True)),
                minimum_tier=entry.get("minimum_tier", "free"),
            )

        self._pricing: Dict[str, TierPricing] = {}
        for key, entry in (raw.get("pricing") or {}).items():
            price = entry.get("price") or {}
            self._pricing[key] = TierPricing(
                tier=entry.get("tier", key),
                name=entry.get("name", key.title()),
                description=entry.get("description", ""),
                price_dollars=Decimal(str(price.get("dollars", 0))),
                currency=price.get("currency", "USD"),
                stripe_price_ids=dict(entry.get("stripe_price_ids") or {}),
            )

        grant = raw.get("lifetime_grant") or {}
        self._lifetime_grant = LifetimeGrant(
            plan_id=grant.get("plan_id", "pro"),
            features=list(grant.get("features") or []),
        )

        logger.info(
            "Loaded feature catalogue: features=%d, tiers=%s, pricing=%s",
            len(self._features),
            self._tiers,
            list(self._pricing.keys()),
        )

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        logger.info("Loading premium features from %s", path)
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------

    def is_valid_feature(self, feature_id: Optional[str]) -> bool:
        return bool(feature_id) and feature_id in self._features

    def get_feature(self, feature_id: str) -> Optional[FeatureDefinition]:
        return self._features.get(feature_id)

    def requires_subscription(self, feature_id: str) -> bool:
        feature = self._features.get(feature_id)
        return feature.requires_subscription if feature else True

    def get_minimum_tier(self, feature_id: str) -> str:
        feature = self._features.get(feature_id)
        return feature.minimum_tier if feature else "free"

    @property
    def feature_ids(self) -> List[str]:
        return list(self._features.keys())

    @property
    def tiers(self) -> List[str]:
        return list(self._tiers)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def get_tier_config(self, tier: str = "PREMIUM") -> TierPricing:
        try:
            return self._pricing[tier]
        except KeyError:
            raise KeyError(f"No pricing configured for tier '{tier}'")

    def get_price_in_cents(self, tier: str = "PREMIUM") -> int:
        dollars = self.get_tier_config(tier).price_dollars
        return int((dollars * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def get_stripe_price_id(self, tier: str = "PREMIUM", env: Optional[str] = None) -> Optional[str]:
        environment = env or os.getenv("ENV", "development")
        return self.get_tier_config(tier).stripe_price_ids.get(environment)

    def validate_pricing_config(self, tier: str = "PREMIUM", env: Optional[str] = None) -> PricingValidation:
        """
        Check the pricing entry for obvious misconfiguration.

        Never raises; callers log the result.
        """
        result = PricingValidation(is_valid=True)
        try:
            pricing = self.get_tier_config(tier)
        except KeyError as e:
            return PricingValidation(is_valid=False, errors=[str(e)])

        if pricing.price_dollars <= 0:
            result.errors.append(f"{tier} price must be positive")
        if len(pricing.currency) != 3:
            result.errors.append(f"{tier} currency must be an ISO 4217 code")

        price_id = self.get_stripe_price_id(tier, env)
        if not price_id:
            result.warnings.append(f"No Stripe price id for environment '{env or os.getenv('ENV', 'development')}'")
        elif "template" in price_id:
            result.warnings.append(f"Stripe price id '{price_id}' is a template placeholder")

        result.is_valid = not result.errors
        return result

    @property
    def lifetime_grant(self) -> LifetimeGrant:
        return self._lifetime_grant


_catalog: Optional[FeatureCatalog] = None
_catalog_lock = Lock()


def get_feature_catalog() -> FeatureCatalog:
    """Get or create the catalogue singleton (thread-safe)."""
    global _catalog
    if _catalog is None:
        with _catalog_lock:
            if _catalog is None:
                _catalog = FeatureCatalog(os.getenv("PREMIUM_FEATURES_CONFIG"))
    return _catalog
