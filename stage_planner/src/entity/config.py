"""Per-stage entity configuration values."""

import dataclasses
import operator
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type


@dataclass(frozen=True)
class EntityConfig:
    """Settings of one entity at one stage.

    Instances are never mutated; use ``with_changes`` to derive a new one.
    ``name`` is the prototype name and changes when the entity is upgraded.
    """

    name: str
    recipe: Optional[str] = None
    items: Mapping[str, int] = field(default_factory=dict)
    control_behavior: Optional[Mapping[str, Any]] = None
    belt_type: Optional[str] = None  # "input" / "output" for directional pairs
    settings: Mapping[str, Any] = field(default_factory=dict)

    def with_changes(self, **changes: Any) -> "EntityConfig":
        return dataclasses.replace(self, **changes)


def _mapping_equal(a: Optional[Mapping], b: Optional[Mapping]) -> bool:
    # Missing and empty mappings mean the same thing
    return dict(a or {}) == dict(b or {})


@lru_cache(maxsize=None)
def config_schema(config_type: Type) -> Tuple[Tuple[str, Callable[[Any, Any], bool]], ...]:
    """Field names and comparison functions for a config dataclass.

    Computed once per type; mapping-valued fields compare by content.
    """
    schema = []
    for config_field in dataclasses.fields(config_type):
        annotation = str(config_field.type)
        if "Mapping" in annotation or "Dict" in annotation:
            schema.append((config_field.name, _mapping_equal))
        else:
            schema.append((config_field.name, operator.eq))
    return tuple(schema)


def configs_equal(a: Optional[EntityConfig], b: Optional[EntityConfig]) -> bool:
    if a is None or b is None:
        return a is b
    if type(a) is not type(b):
        return False
    return all(
        compare(getattr(a, name), getattr(b, name))
        for name, compare in config_schema(type(a))
    )


def diff_configs(below: EntityConfig, above: EntityConfig) -> Dict[str, Any]:
    """Fields whose value differs in above, mapped to above's value."""
    return {
        name: getattr(above, name)
        for name, compare in config_schema(type(above))
        if not compare(getattr(below, name), getattr(above, name))
    }


def apply_config_diff(config: EntityConfig, diff: Mapping[str, Any]) -> EntityConfig:
    if not diff:
        return config
    return dataclasses.replace(config, **diff)


def config_to_dict(config: EntityConfig) -> Dict[str, Any]:
    """Plain-data form, omitting fields left at their defaults."""
    data: Dict[str, Any] = {"name": config.name}
    for name, _compare in config_schema(type(config)):
        value = getattr(config, name)
        if name == "name" or value is None or value == {}:
            continue
        data[name] = dict(value) if isinstance(value, Mapping) else value
    return data


def config_from_dict(data: Mapping[str, Any], name: Optional[str] = None) -> EntityConfig:
    """Build a config from plain data; name falls back to the given kind."""
    known = {config_field.name for config_field in dataclasses.fields(EntityConfig)}
    values = {key: value for key, value in data.items() if key in known}
    extra = {key: value for key, value in data.items() if key not in known}
    if extra:
        values["settings"] = {**dict(values.get("settings") or {}), **extra}
    if "name" not in values:
        if name is None:
            raise ValueError("entity config needs a name")
        values["name"] = name
    return EntityConfig(**values)
