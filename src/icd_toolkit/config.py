"""
Configuration loader for icd_toolkit.

Handles loading parse options and reference data locations from YAML files.
"""

import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional, Union
import logging

from .code import CodeForm, CodeKind, INFER, coerce_form, coerce_kind
from .registry import MapRegistry, init_builtin_maps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseOptions:
    """
    Hints applied when reading raw code text.

    Attributes:
        kind: ICD9, ICD10 or None to infer
        form: SHORT, DECIMAL or None to infer
        strict: Reject codes that do not match their kind's grammar
    """

    kind: Optional[CodeKind] = None
    form: Optional[CodeForm] = None
    strict: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ParseOptions":
        data = data or {}
        unknown = set(data) - {"kind", "form", "strict"}
        if unknown:
            raise ValueError(f"Unknown parse options: {sorted(unknown)}")
        return cls(
            kind=coerce_kind(data.get("kind", INFER)),
            form=coerce_form(data.get("form", INFER)),
            strict=bool(data.get("strict", False)),
        )

    def as_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for parse_code and friends."""
        return {
            "kind": self.kind or INFER,
            "form": self.form or INFER,
            "strict": self.strict,
        }


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML config file

    Returns:
        Configuration dictionary
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def get_parse_options(config: Dict[str, Any]) -> ParseOptions:
    """Read the 'options' section of a configuration."""
    return ParseOptions.from_dict(config.get("options"))


def build_registry(config: Dict[str, Any], registry: Optional[MapRegistry] = None) -> MapRegistry:
    """
    Register the hierarchies and maps named in a configuration.

    Relative paths are resolved against the configuration's 'base_dir'.
    Bundled maps are always registered.

    Args:
        config: Full configuration dictionary
        registry: MapRegistry to use (creates new if None)

    Returns:
        Populated MapRegistry
    """
    registry = init_builtin_maps(registry)
    base_dir = Path(config.get("base_dir", "."))

    for name, entry in (config.get("hierarchies") or {}).items():
        entry = dict(entry)
        file_path = base_dir / entry.pop("file_path")
        kind = entry.pop("kind")
        registry.register_hierarchy_from_file(name, file_path, kind=kind, overwrite=True, **entry)

    for name, entry in (config.get("maps") or {}).items():
        registry.register_from_yaml(name, base_dir / entry["file_path"], overwrite=True)

    return registry


# Default configuration template
DEFAULT_CONFIG = """
# icd_toolkit configuration
#
# Parse options apply to every code read from the command line or a file.

options:
  kind: infer        # icd9 | icd10 | infer
  form: infer        # short | decimal | infer
  strict: false

# Reference hierarchies (CSV with code, parent, billable, short_desc, long_desc)
hierarchies:
  icd9cm:
    file_path: "data/icd9cm_hierarchy.csv"
    kind: icd9
    delimiter: ","

# Extra comorbidity maps (bundled Charlson maps are always available)
maps: {}
#  elixhauser_ahrq:
#    file_path: "maps/elixhauser_ahrq.yaml"

# Base directory for relative paths
base_dir: "."
"""


def create_default_config(output_path: Union[str, Path]):
    """
    Create a default configuration file.

    Args:
        output_path: Path where to save the config file
    """
    output_path = Path(output_path)

    if output_path.exists():
        logger.warning(f"Config file already exists: {output_path}")
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(DEFAULT_CONFIG)

    logger.info(f"Created default config at {output_path}")
