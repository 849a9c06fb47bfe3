# utils/input_adapter.py
from models import SimulationConfig, ConfigurationError
from utils.xml_loader import DEFAULT_SETUP
from dataclasses import fields, MISSING
from typing import Any


def get_simulation_config(**kwargs: Any) -> SimulationConfig:
    """
    Builds a SimulationConfig by merging the XML defaults with any overrides,
    using reflection (dataclasses.fields) to ensure only valid fields are passed.
    """
    config_fields = fields(SimulationConfig)
    config_field_names = {f.name for f in config_fields}

    unknown = set(kwargs) - config_field_names
    if unknown:
        raise ConfigurationError(f"Unknown configuration field(s): {', '.join(sorted(unknown))}")

    # 1. Start with defaults loaded from the XML setup file
    inputs_dict = DEFAULT_SETUP.copy()

    # 2. Overrides win over any matching defaults
    inputs_dict.update(kwargs)

    # 3. Keep only keys that match SimulationConfig fields
    final_inputs = {
        key: value
        for key, value in inputs_dict.items()
        if key in config_field_names
    }

    required = {f.name for f in config_fields if f.default is MISSING}
    missing = required - set(final_inputs)
    if missing:
        raise ConfigurationError(f"Missing configuration field(s): {', '.join(sorted(missing))}")

    return SimulationConfig(**final_inputs)
