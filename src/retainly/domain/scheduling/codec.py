"""
Storage/interchange format for parameter sets.

A parameter set is stored as ``{"w": [17 floats], "desiredRetention": float}``.
Unknown fields are ignored on input.
"""

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from retainly.domain.errors import MalformedOverride, ParameterError

from .models import ParameterSet

logger = logging.getLogger(__name__)


class ParameterSetPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    w: list[float]
    desiredRetention: float


def parameters_to_dict(parameters: ParameterSet) -> dict[str, Any]:
    return ParameterSetPayload(
        w=list(parameters.weights), desiredRetention=parameters.target_retention
    ).model_dump()


def encode_parameters(parameters: ParameterSet) -> str:
    return json.dumps(parameters_to_dict(parameters))


def parse_parameters(raw: str | bytes | dict[str, Any]) -> ParameterSet:
    """
    Strictly decode a parameter payload.

    Raises:
        MalformedOverride: if the payload is not valid JSON, lacks a field,
            has the wrong types, or violates the parameter set invariants.
    """
    try:
        if isinstance(raw, dict):
            payload = ParameterSetPayload.model_validate(raw)
        else:
            payload = ParameterSetPayload.model_validate_json(raw)
        return ParameterSet.create(payload.w, payload.desiredRetention)
    except (ValidationError, ParameterError) as e:
        raise MalformedOverride(f"Invalid parameter payload: {e}") from e


def decode_parameters(raw: str | bytes | dict[str, Any] | None) -> ParameterSet | None:
    """
    Leniently decode a stored override.

    Returns None for absent or malformed data so callers fall back to the
    default set instead of failing.
    """
    if raw is None:
        return None
    try:
        return parse_parameters(raw)
    except MalformedOverride as e:
        logger.warning(f"Ignoring malformed parameter override: {e}")
        return None
