"""
Scheme registry loading.

The registry collaborator hands over the full scheme list per call, either as
parsed records or as a JSON file holding a list or {"schemes": [...]}.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from pydantic import ValidationError

from .models import GovernmentScheme

logger = logging.getLogger(__name__)


def parse_registry(records: Iterable[Dict[str, Any]]) -> List[GovernmentScheme]:
    """Validate raw records; invalid or duplicate entries are skipped with a warning"""
    schemes: List[GovernmentScheme] = []
    seen_ids = set()

    for index, record in enumerate(records):
        try:
            scheme = GovernmentScheme.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Skipping invalid scheme record #{index}: {e.error_count()} validation errors")
            continue

        if scheme.id in seen_ids:
            logger.warning(f"Skipping duplicate scheme id {scheme.id}")
            continue
        seen_ids.add(scheme.id)
        schemes.append(scheme)

    return schemes


def load_registry(path: Union[str, Path]) -> List[GovernmentScheme]:
    """Load a scheme registry JSON file"""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("schemes", [])
    if not isinstance(data, list):
        raise ValueError(f"Scheme registry {path.name} must hold a list of schemes")

    schemes = parse_registry(data)
    logger.info(f"Loaded {len(schemes)} schemes from {path.name}")
    return schemes
