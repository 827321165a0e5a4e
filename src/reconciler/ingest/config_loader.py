"""Load resource configuration files and variables."""

import os
from pathlib import Path
from typing import Dict, Any, List, Mapping, Optional, Tuple
import yaml
from pydantic import ValidationError
from ..utils.errors import ConfigurationLoadError, VariableError
from ..utils.logging import get_logger
from .expressions import substitute_variables
from .models import Configuration, Lifecycle, ResourceAddress, ResourceDefinition, NAME_PATTERN

logger = get_logger("ingest.config_loader")

CONFIG_SUFFIXES = (".yaml", ".yml", ".json")
VARIABLE_FILE_SUFFIXES = (".vars.yaml", ".vars.yml", ".vars.json")
TOP_LEVEL_KEYS = ("resource", "variable")
META_ARGUMENTS = ("depends_on", "lifecycle")
ENV_VAR_PREFIX = "RECONCILER_VAR_"


def load_configuration(
    config_path: str,
    var_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Configuration:
    """
    Load resource definitions from a file or a directory of files.

    Args:
        config_path: A YAML/JSON file, or a directory whose *.yaml, *.yml and
            *.json files are loaded in sorted order (hidden files and
            *.vars.* files are skipped)
        var_file: Optional YAML/JSON mapping of variable values
        environ: Environment used for RECONCILER_VAR_<name> values (defaults to os.environ)

    Returns:
        Configuration with definitions in declaration order

    Raises:
        ConfigurationLoadError: If files are missing, malformed or declare duplicates
        VariableError: If a variable is undeclared or has no value
    """
    files = _collect_files(Path(config_path))

    declared: Dict[str, Dict[str, Any]] = {}
    raw_resources: List[Tuple[str, str, Any, str]] = []
    seen = set()

    for path in files:
        document = _read_document(path)
        unknown_keys = [k for k in document if k not in TOP_LEVEL_KEYS]
        if unknown_keys:
            raise ConfigurationLoadError(
                f"{path}: unexpected top-level key(s) {unknown_keys}; "
                f"expected only {list(TOP_LEVEL_KEYS)}"
            )

        variables = document.get("variable") or {}
        if not isinstance(variables, dict):
            raise ConfigurationLoadError(f"{path}: 'variable' must map names to declarations")
        for name, spec in variables.items():
            if name in declared:
                raise ConfigurationLoadError(f"{path}: variable '{name}' declared more than once")
            if spec is not None and not isinstance(spec, dict):
                raise ConfigurationLoadError(f"{path}: variable '{name}' must be a mapping")
            declared[name] = spec or {}

        resources = document.get("resource") or {}
        if not isinstance(resources, dict):
            raise ConfigurationLoadError(f"{path}: 'resource' must map type -> name -> attributes")
        for resource_type, instances in resources.items():
            if not isinstance(instances, dict):
                raise ConfigurationLoadError(f"{path}: resource type '{resource_type}' must map names to bodies")
            for name, body in instances.items():
                address = f"{resource_type}.{name}"
                if address in seen:
                    raise ConfigurationLoadError(f"{path}: resource '{address}' declared more than once")
                seen.add(address)
                raw_resources.append((resource_type, name, body, str(path)))

    variables = resolve_variables(declared, load_variables_file(var_file) if var_file else {}, environ)
    definitions = [
        _build_definition(resource_type, name, body, source, variables)
        for resource_type, name, body, source in raw_resources
    ]

    logger.info(f"Loaded {len(definitions)} resource definitions from {len(files)} file(s) under {config_path}")
    return Configuration(definitions=definitions, variables=variables)


def load_variables_file(var_file: str) -> Dict[str, Any]:
    """
    Load a variables file (YAML or JSON mapping of name -> value).

    Raises:
        ConfigurationLoadError: If the file is missing or not a mapping
    """
    path = Path(var_file)
    if not path.is_file():
        raise ConfigurationLoadError(f"Variables file not found: {var_file}")
    data = _read_document(path)
    logger.debug(f"Loaded {len(data)} variable values from {var_file}")
    return data


def resolve_variables(
    declared: Dict[str, Dict[str, Any]],
    values: Dict[str, Any],
    environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Resolve variable values. Priority: environment, then variables file, then default.

    Raises:
        VariableError: If a declared variable ends up without a value
    """
    if environ is None:
        environ = os.environ

    for name in values:
        if name not in declared:
            logger.warning(f"Value provided for undeclared variable '{name}' is ignored")

    resolved = {}
    for name, spec in declared.items():
        env_key = f"{ENV_VAR_PREFIX}{name}"
        if env_key in environ:
            resolved[name] = _parse_env_value(environ[env_key])
        elif name in values:
            resolved[name] = values[name]
        elif "default" in spec:
            resolved[name] = spec["default"]
        else:
            raise VariableError(
                f"No value for required variable '{name}'. "
                f"Set it in a variables file or via {env_key}."
            )
    return resolved


def _collect_files(path: Path) -> List[Path]:
    if not path.exists():
        raise ConfigurationLoadError(f"Configuration path not found: {path}")

    if path.is_file():
        return [path]

    files = sorted(
        p for p in path.iterdir()
        if p.is_file()
        and not p.name.startswith(".")
        and p.suffix in CONFIG_SUFFIXES
        and not p.name.endswith(VARIABLE_FILE_SUFFIXES)
    )
    if not files:
        raise ConfigurationLoadError(
            f"No configuration files found in {path}. "
            f"Expected files ending in {', '.join(CONFIG_SUFFIXES)}"
        )
    return files


def _read_document(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationLoadError(f"Invalid YAML/JSON in {path}: {e}")
    except OSError as e:
        raise ConfigurationLoadError(f"Error reading {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationLoadError(f"{path} must contain a mapping at the top level")
    return data


def _build_definition(
    resource_type: str,
    name: str,
    body: Any,
    source: str,
    variables: Dict[str, Any]
) -> ResourceDefinition:
    address = f"{resource_type}.{name}"
    if not NAME_PATTERN.match(resource_type) or not NAME_PATTERN.match(str(name)):
        raise ConfigurationLoadError(f"{source}: invalid resource address '{address}'")
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise ConfigurationLoadError(f"{source}: body of '{address}' must be a mapping")

    attributes = {k: v for k, v in body.items() if k not in META_ARGUMENTS}

    depends_on_raw = body.get("depends_on") or []
    if not isinstance(depends_on_raw, list):
        raise ConfigurationLoadError(f"{source}: depends_on of '{address}' must be a list")
    depends_on = [ResourceAddress.parse(str(item)) for item in depends_on_raw]

    try:
        lifecycle = Lifecycle(**(body.get("lifecycle") or {}))
    except (TypeError, ValidationError) as e:
        raise ConfigurationLoadError(f"{source}: invalid lifecycle block on '{address}': {e}")

    return ResourceDefinition(
        type=resource_type,
        name=str(name),
        attributes=substitute_variables(attributes, variables),
        depends_on=depends_on,
        lifecycle=lifecycle,
        source=source
    )


def _parse_env_value(raw: str) -> Any:
    """Environment values are parsed as YAML scalars/collections so lists and numbers work."""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
