"""Business settings for the Delivery domain.

Values come from the ``[custom]`` table of the domain configuration
(``domain.toml``) and fall back to the defaults below when a key is absent.
"""

from protean.utils.globals import current_domain

# Driver search radii, in kilometres
CONFIRM_SEARCH_RADIUS_KM = 100_000.0
REASSIGN_SEARCH_RADIUS_KM = 10.0
RETURN_SEARCH_RADIUS_KM = 1_000.0

_DEFAULTS = {
    "confirm_search_radius_km": CONFIRM_SEARCH_RADIUS_KM,
    "reassign_search_radius_km": REASSIGN_SEARCH_RADIUS_KM,
    "return_search_radius_km": RETURN_SEARCH_RADIUS_KM,
    "single_vendor_shipping_fee": 1.0,
    "multi_vendor_shipping_fee": 2.0,
    "commission_basis": "grand_total",
    "driver_leg_policy": "first_delivered",
    "notifier_adapter": "fake",
    "hub_a": {"code": "A", "city": "Damascus", "latitude": 33.5138, "longitude": 36.2765},
    "hub_b": {"code": "B", "city": "Aleppo", "latitude": 36.2021, "longitude": 37.1343},
}


def setting(key: str):
    """Return a business setting, preferring the active domain's configuration."""
    if key not in _DEFAULTS:
        raise KeyError(f"Unknown delivery setting: {key}")

    custom = current_domain.config.get("custom") or {}
    return custom.get(key, _DEFAULTS[key])
