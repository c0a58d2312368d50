from __future__ import annotations

__all__ = [
    "AggregationMethod",
    "DEFAULT_OUTPUT_VARIABLES",
    "DEFAULT_AGGREGATION_METHODS",
    "VariableManager",
]

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from climproc.models import ClimateVariable, VariableInfo


class AggregationMethod(str, Enum):
    """Temporal aggregation applied when coarsening the input timestep."""

    MEAN = "mean"
    SUM = "sum"
    MINIMUM = "min"
    MAXIMUM = "max"

    def __str__(self) -> str:
        return self.value


# Output names and units required by the model.
DEFAULT_OUTPUT_VARIABLES: Mapping[ClimateVariable, VariableInfo] = MappingProxyType({
    ClimateVariable.SPECIFIC_HUMIDITY: VariableInfo("huss", "1"),
    ClimateVariable.SURFACE_PRESSURE: VariableInfo("ps", "Pa"),
    ClimateVariable.SHORTWAVE_RADIATION: VariableInfo("rsds", "W m-2"),
    ClimateVariable.WIND_SPEED: VariableInfo("sfcWind", "m s-1"),
    ClimateVariable.TEMPERATURE: VariableInfo("tas", "degC"),
    ClimateVariable.PRECIPITATION: VariableInfo("pr", "mm"),
    ClimateVariable.MAX_TEMPERATURE: VariableInfo("tasmax", "degC"),
    ClimateVariable.MIN_TEMPERATURE: VariableInfo("tasmin", "degC"),
    ClimateVariable.RELATIVE_HUMIDITY: VariableInfo("hurs", "1"),
    ClimateVariable.MIN_RELATIVE_HUMIDITY: VariableInfo("hursmin", "1"),
    ClimateVariable.MAX_RELATIVE_HUMIDITY: VariableInfo("hursmax", "1"),
    ClimateVariable.VPD: VariableInfo("vpd", "kPa"),
})

DEFAULT_AGGREGATION_METHODS: Mapping[ClimateVariable, AggregationMethod] = MappingProxyType({
    ClimateVariable.TEMPERATURE: AggregationMethod.MEAN,
    ClimateVariable.PRECIPITATION: AggregationMethod.SUM,
    ClimateVariable.SPECIFIC_HUMIDITY: AggregationMethod.MEAN,
    ClimateVariable.SURFACE_PRESSURE: AggregationMethod.MEAN,
    ClimateVariable.SHORTWAVE_RADIATION: AggregationMethod.MEAN,
    ClimateVariable.WIND_SPEED: AggregationMethod.MEAN,
    ClimateVariable.MAX_TEMPERATURE: AggregationMethod.MAXIMUM,
    ClimateVariable.MIN_TEMPERATURE: AggregationMethod.MINIMUM,
    ClimateVariable.RELATIVE_HUMIDITY: AggregationMethod.MEAN,
    ClimateVariable.MIN_RELATIVE_HUMIDITY: AggregationMethod.MEAN,
    ClimateVariable.MAX_RELATIVE_HUMIDITY: AggregationMethod.MEAN,
    ClimateVariable.VPD: AggregationMethod.MEAN,
})


class VariableManager:
    """Output requirements for each variable.

    The lookup tables are passed in at construction so that a run can
    override names or units without touching module state.
    """

    def __init__(
        self,
        output_variables: Mapping[ClimateVariable, VariableInfo] = DEFAULT_OUTPUT_VARIABLES,
        aggregation_methods: Mapping[ClimateVariable, AggregationMethod] = DEFAULT_AGGREGATION_METHODS,
    ) -> None:
        self._output_variables = dict(output_variables)
        self._aggregation_methods = dict(aggregation_methods)

    def get_output_requirements(self, variable: ClimateVariable) -> VariableInfo:
        """Return the name and units *variable* must have in the output files."""
        try:
            return self._output_variables[variable]
        except KeyError:
            raise KeyError(f"No output requirements defined for variable {variable}") from None

    def get_aggregation_method(self, variable: ClimateVariable) -> AggregationMethod:
        try:
            return self._aggregation_methods[variable]
        except KeyError:
            raise KeyError(f"No aggregation method defined for variable {variable}") from None
