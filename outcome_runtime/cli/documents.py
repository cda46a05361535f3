"""Input document loading for CLI commands."""

from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from outcome_runtime.core.exceptions import ConfigValidationError
from outcome_runtime.portfolio import Candidate
from outcome_runtime.statistics import Measurement, MeasurementPlan, Variant

ModelT = TypeVar("ModelT", bound=BaseModel)


class SignificanceDocument(BaseModel):
    """Plan plus measurements, either as records or as per-variant lists."""

    plan: MeasurementPlan
    measurements: list[Measurement] = Field(default_factory=list)
    control: list[float] = Field(default_factory=list)
    treatment: list[float] = Field(default_factory=list)

    @model_validator(mode="after")
    def merge_value_lists(self) -> "SignificanceDocument":
        if self.control or self.treatment:
            self.measurements = [
                *self.measurements,
                *(Measurement(value=v, variant=Variant.CONTROL) for v in self.control),
                *(
                    Measurement(value=v, variant=Variant.TREATMENT)
                    for v in self.treatment
                ),
            ]
        return self

    def values(self) -> tuple[list[float], list[float]]:
        """Return (control, treatment) values."""
        control = [m.value for m in self.measurements if m.variant == Variant.CONTROL]
        treatment = [
            m.value for m in self.measurements if m.variant == Variant.TREATMENT
        ]
        return control, treatment


class PortfolioDocument(BaseModel):
    """Candidate hypotheses to score and select from."""

    candidates: list[Candidate]


def load_document(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON mapping from ``path``.

    Raises:
        ConfigValidationError: If the file cannot be read or parsed, or does
            not hold a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML: {e}", file_path=str(path)) from e
    except OSError as e:
        raise ConfigValidationError(
            f"Cannot read file: {e}", file_path=str(path)
        ) from e

    if not isinstance(data, dict):
        raise ConfigValidationError(
            "Document must be a mapping", file_path=str(path)
        )
    return data


def _validation_errors(error: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        errors.setdefault(location, []).append(item["msg"])
    return errors


def parse_document(path: Path, model: type[ModelT]) -> ModelT:
    """Load ``path`` and validate it as ``model``.

    Raises:
        ConfigValidationError: On any read, parse or validation failure.
    """
    data = load_document(path)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(
            f"{e.error_count()} validation error(s)",
            errors=_validation_errors(e),
            file_path=str(path),
        ) from e
