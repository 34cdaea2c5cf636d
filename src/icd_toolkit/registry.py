"""
Registry for managing comorbidity maps and reference hierarchies.

Allows centralized management of Charlson, Elixhauser and other maps, and
of the ICD-9 / ICD-10 hierarchies used for condensation and explanation.
Reference data is registered once and only read afterwards.
"""

from typing import Dict, Optional, List, Union
from pathlib import Path
import logging

from .code import CodeKind, coerce_kind
from .comorbidity import BUILTIN_MAPS, ComorbidityMap, load_builtin_map
from .hierarchy import Hierarchy

logger = logging.getLogger(__name__)


class MapRegistry:
    """
    Centralized registry for comorbidity maps and hierarchies.

    Usage:
        # Initialize registry with the bundled maps
        registry = init_builtin_maps()

        # Register your own
        registry.register_from_yaml("elixhauser_ahrq", "maps/elixhauser.yaml")
        registry.register_hierarchy_from_file(
            "icd9cm", "data/icd9cm_hierarchy.csv", kind="icd9"
        )

        # Use registered data
        cmap = registry.get_map("charlson_quan_icd9")
        hierarchy = registry.get_hierarchy("icd9cm")
    """

    def __init__(self):
        """Initialize empty registry."""
        self._maps: Dict[str, ComorbidityMap] = {}
        self._hierarchies: Dict[str, Hierarchy] = {}
        logger.info("Initialized MapRegistry")

    def register(
        self,
        name: str,
        cmap: ComorbidityMap,
        overwrite: bool = False
    ):
        """
        Register a ComorbidityMap instance.

        Args:
            name: Unique name for this map
            cmap: ComorbidityMap instance
            overwrite: Whether to overwrite existing map with same name
        """
        if name in self._maps and not overwrite:
            raise ValueError(
                f"Map '{name}' already registered. "
                f"Use overwrite=True to replace."
            )

        self._maps[name] = cmap
        logger.info(f"Registered map: {name}")

    def register_from_yaml(
        self,
        name: str,
        file_path: Union[str, Path],
        overwrite: bool = False
    ):
        """Create and register a map from a YAML definition."""
        cmap = ComorbidityMap.from_yaml(file_path, name=name)
        self.register(name, cmap, overwrite=overwrite)

    def register_hierarchy(
        self,
        name: str,
        hierarchy: Hierarchy,
        overwrite: bool = False
    ):
        """Register a Hierarchy instance."""
        if name in self._hierarchies and not overwrite:
            raise ValueError(
                f"Hierarchy '{name}' already registered. "
                f"Use overwrite=True to replace."
            )

        self._hierarchies[name] = hierarchy
        logger.info(f"Registered hierarchy: {name}")

    def register_hierarchy_from_file(
        self,
        name: str,
        file_path: Union[str, Path],
        kind: Union[CodeKind, str],
        delimiter: str = ",",
        overwrite: bool = False,
        **kwargs
    ):
        """
        Create and register a hierarchy from a reference table.

        Args:
            name: Unique name for this hierarchy
            file_path: Path to the reference table
            kind: Code kind of the table
            delimiter: File delimiter
            overwrite: Whether to overwrite existing hierarchy
            **kwargs: Column names, passed to Hierarchy.from_dataframe
        """
        hierarchy = Hierarchy.from_file(file_path, kind=kind, delimiter=delimiter, name=name, **kwargs)
        self.register_hierarchy(name, hierarchy, overwrite=overwrite)

    def get_map(self, name: str) -> ComorbidityMap:
        """
        Get a registered map by name.

        Raises:
            KeyError: No map registered under this name
        """
        if name not in self._maps:
            raise KeyError(
                f"Map '{name}' not found. "
                f"Available maps: {self.list_maps()}"
            )

        return self._maps[name]

    def get_hierarchy(self, name: str) -> Hierarchy:
        """
        Get a registered hierarchy by name.

        Raises:
            KeyError: No hierarchy registered under this name
        """
        if name not in self._hierarchies:
            raise KeyError(
                f"Hierarchy '{name}' not found. "
                f"Available hierarchies: {self.list_hierarchies()}"
            )

        return self._hierarchies[name]

    def get_hierarchy_by_kind(self, kind: Union[CodeKind, str]) -> Optional[Hierarchy]:
        """
        Get the first registered hierarchy of a code kind.

        Returns:
            Hierarchy if found, None otherwise
        """
        wanted = coerce_kind(kind)
        if wanted is None:
            raise ValueError("A hierarchy lookup needs an explicit code kind")
        for hierarchy in self._hierarchies.values():
            if hierarchy.kind == wanted:
                return hierarchy

        logger.debug(f"No hierarchy found for kind: {wanted.value}")
        return None

    def list_maps(self) -> List[str]:
        """Get list of all registered map names."""
        return list(self._maps.keys())

    def list_hierarchies(self) -> List[str]:
        return list(self._hierarchies.keys())

    def has_map(self, name: str) -> bool:
        """Check if a map is registered."""
        return name in self._maps

    def has_hierarchy(self, name: str) -> bool:
        return name in self._hierarchies

    def remove_map(self, name: str):
        """Remove a registered map."""
        if name not in self._maps:
            logger.warning(f"Map '{name}' not found, nothing to remove")
            return

        del self._maps[name]
        logger.info(f"Removed map: {name}")

    def __len__(self) -> int:
        """Return number of registered maps."""
        return len(self._maps)

    def __repr__(self) -> str:
        map_info = ", ".join(
            f"{name}({len(cmap)} categories)"
            for name, cmap in self._maps.items()
        )
        return f"MapRegistry({map_info})"


# Global registry instance (optional convenience)
_global_registry: Optional[MapRegistry] = None


def get_global_registry() -> MapRegistry:
    """Get or create the global registry instance."""
    global _global_registry
    if _global_registry is None:
        _global_registry = init_builtin_maps()
    return _global_registry


def init_builtin_maps(registry: Optional[MapRegistry] = None) -> MapRegistry:
    """
    Convenience function to register the maps bundled with the package.

    Args:
        registry: MapRegistry to use (creates new if None)

    Returns:
        MapRegistry with the bundled maps registered
    """
    if registry is None:
        registry = MapRegistry()

    for name in BUILTIN_MAPS:
        if not registry.has_map(name):
            registry.register(name, load_builtin_map(name))

    logger.info(f"Registered {len(BUILTIN_MAPS)} bundled maps")
    return registry
