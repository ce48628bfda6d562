import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Union

from pydantic import ValidationError

from .schemas import SurveyDefinition

logger = logging.getLogger(__name__)


def build_registry(surveys: Iterable[SurveyDefinition]) -> Mapping[str, SurveyDefinition]:
    """Read-only mapping from survey id to definition; the first id wins."""
    registry: Dict[str, SurveyDefinition] = {}
    for survey in surveys:
        if survey.id in registry:
            logger.warning("Doppelte Survey-ID %s wird übersprungen", survey.id)
            continue
        registry[survey.id] = survey
    return MappingProxyType(registry)


def load_survey_file(path: Path) -> SurveyDefinition:
    with path.open("r", encoding="utf-8") as f:
        return SurveyDefinition.model_validate(json.load(f))


def load_survey_definitions(definitions_path: Union[str, Path]) -> Mapping[str, SurveyDefinition]:
    """Load every ``*.json`` below ``definitions_path`` once at startup.

    Invalid files are logged and skipped so one broken definition does not
    take the other surveys down with it.
    """
    root = Path(definitions_path)
    if not root.is_dir():
        logger.warning("Verzeichnis für Survey-Definitionen nicht gefunden: %s", root)
        return MappingProxyType({})

    surveys = []
    for file_path in sorted(root.rglob("*.json")):
        try:
            surveys.append(load_survey_file(file_path))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.error("Survey-Definition %s konnte nicht geladen werden: %s", file_path, e)
            continue
        logger.debug("Survey-Definition geladen: %s", file_path)

    registry = build_registry(surveys)
    logger.info("%d Survey-Definitionen aus %s geladen", len(registry), root)
    return registry
