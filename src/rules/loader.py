import logging
from pathlib import Path
from typing import get_args

import yaml
from pydantic import ValidationError

from src.domain.entities import BookRole, ExportQuality
from src.rules.models import Rules

logger = logging.getLogger(__name__)


def _consistency_problems(rules: Rules) -> list[str]:
    problems = []
    exports = rules.exports

    for quality in get_args(ExportQuality):
        if quality not in exports.quality_dpi:
            problems.append(f"exports.quality_dpi has no entry for '{quality}'")

    known_roles = set(get_args(BookRole))
    for quality, roles in exports.quality_roles.items():
        unknown = sorted(set(roles) - known_roles)
        if unknown:
            problems.append(f"exports.quality_roles.{quality} names unknown roles {unknown}")

    design = rules.design
    for section, items in (("palettes", design.palettes), ("templates", design.templates)):
        ids = [item.id for item in items]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            problems.append(f"design.{section} has duplicate ids {duplicates}")

    return problems


def load_rules(path: Path | str) -> Rules:
    """
    Load rules.yaml and validate it against the Rules models.

    Raises FileNotFoundError if the file is missing and ValueError if the YAML
    is malformed, the schema does not match, or sections contradict each other
    (a quality tier without a DPI, a role name that does not exist).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Rules file {path} must contain a mapping at the top level")

    try:
        rules = Rules.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e

    problems = _consistency_problems(rules)
    if problems:
        raise ValueError("Rules are inconsistent:\n- " + "\n- ".join(problems))

    logger.debug("Loaded rules %s v%s", rules.project.slug, rules.project.rules_version)
    return rules
