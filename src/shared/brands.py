"""Brand registry loading and validation.

Brands are declared in a YAML file keyed by slug (see config/brands.yaml).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

__all__ = [
    'Brand',
    'load_brands',
    'parse_brands',
    'validate_brands_config',
]


@dataclass(frozen=True)
class Brand:
    """A brand whose retail locations are collected."""
    id: int
    slug: str
    name: str
    domain: Optional[str] = None
    store_locator_url: Optional[str] = None
    is_active: bool = True


def _read_yaml(config_path: str) -> Any:
    with open(config_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


def validate_brands_config(config_path: str = "config/brands.yaml") -> List[str]:
    """Validate the brand registry before a run.

    Args:
        config_path: Path to the brands YAML file

    Returns:
        List of validation errors (empty if config is valid)
    """
    try:
        config = _read_yaml(config_path)
    except FileNotFoundError:
        return [f"Configuration file not found: {config_path}"]
    except yaml.YAMLError as e:
        return [f"Invalid YAML syntax in config file: {e}"]

    if not config:
        return ["Configuration file is empty"]
    if not isinstance(config, dict):
        return ["Configuration must be a dictionary"]
    if 'brands' not in config:
        return ["Missing required 'brands' section"]

    brands = config.get('brands')
    if not isinstance(brands, dict):
        return ["'brands' must be a dictionary keyed by slug"]

    errors = []
    seen_ids: Dict[int, str] = {}
    for slug, brand_config in brands.items():
        if not isinstance(brand_config, dict):
            errors.append(f"{slug}: configuration must be a dictionary")
            continue

        brand_id = brand_config.get('id')
        if not isinstance(brand_id, int) or isinstance(brand_id, bool):
            errors.append(f"{slug}: 'id' must be an integer")
        elif brand_id in seen_ids:
            errors.append(f"{slug}: duplicate id {brand_id} (also used by {seen_ids[brand_id]})")
        else:
            seen_ids[brand_id] = slug

        for field in ('name', 'domain', 'store_locator_url'):
            value = brand_config.get(field)
            if value is not None and not isinstance(value, str):
                errors.append(f"{slug}: '{field}' must be a string")

        url = brand_config.get('store_locator_url')
        if isinstance(url, str) and url.strip() and not url.strip().startswith(('http://', 'https://')):
            errors.append(f"{slug}: 'store_locator_url' must start with http:// or https://")

        enabled = brand_config.get('enabled', True)
        if not isinstance(enabled, bool):
            errors.append(f"{slug}: 'enabled' must be true or false")

    return errors


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_brands(config: Dict[str, Any]) -> List[Brand]:
    """Build Brand objects from a parsed registry dict."""
    brands = []
    for slug, brand_config in (config.get('brands') or {}).items():
        brands.append(Brand(
            id=brand_config['id'],
            slug=str(slug),
            name=brand_config.get('name') or str(slug),
            domain=_blank_to_none(brand_config.get('domain')),
            store_locator_url=_blank_to_none(brand_config.get('store_locator_url')),
            is_active=brand_config.get('enabled', True),
        ))
    return brands


def load_brands(config_path: str = "config/brands.yaml") -> List[Brand]:
    """Load the brand registry.

    Args:
        config_path: Path to the brands YAML file

    Returns:
        Every declared brand, enabled or not

    Raises:
        ValueError: If the file fails validation
    """
    errors = validate_brands_config(config_path)
    if errors:
        raise ValueError(f"Invalid brand configuration: {'; '.join(errors)}")

    brands = parse_brands(_read_yaml(config_path))
    logging.debug(f"Loaded {len(brands)} brands from {config_path}")
    return brands
