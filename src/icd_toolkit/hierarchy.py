"""
Reference hierarchy of classification codes.

A Hierarchy is a read-only forest of HierarchyNode objects keyed by
short-form code. It is built once from a reference table and then shared
by condensation, explanation and definedness checks.

Supported table columns:
- code (required)
- parent (optional; derived from the code when absent)
- billable (optional; defaults to "has no children")
- short_desc, long_desc (optional)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .code import Code, CodeForm, CodeKind, coerce_kind
from .convert import to_short
from .exceptions import IcdError
from .parser import parse_code

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "t", "yes", "y"}


@dataclass(eq=False)
class HierarchyNode:
    """
    One position in the classification tree.

    Attributes:
        code: Short-form code
        billable: Whether the code is usable directly for diagnosis
        children: Child nodes, in reference-table order
        parent: Short-form code of the parent, None for roots
    """

    code: str
    billable: bool = False
    short_desc: str = ""
    long_desc: str = ""
    parent: Optional[str] = None
    children: List["HierarchyNode"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def __repr__(self) -> str:
        return (
            f"HierarchyNode(code='{self.code}', billable={self.billable}, "
            f"children={len(self.children)})"
        )


def _as_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value != value:
        return None
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in _TRUE_STRINGS


def _as_text(value: Any) -> str:
    if value is None or (isinstance(value, float) and value != value):
        return ""
    return str(value).strip()


class Hierarchy:
    """
    Read-only forest of classification codes.

    Usage:
        hierarchy = Hierarchy.from_file("data/icd9cm_hierarchy.csv", kind="icd9")

        hierarchy.is_defined("391.0")     # True
        hierarchy.children("391")         # ['391', '3910', '3911', ...]
        hierarchy.describe("3910")        # ('Acute rheumatic pericarditis', ...)
    """

    def __init__(self, records: Iterable[Mapping[str, Any]], kind: Union[CodeKind, str], name: str = "Hierarchy"):
        """
        Build the forest from records.

        Args:
            records: Mappings with a 'code' key and optional 'parent',
                'billable', 'short_desc' and 'long_desc' keys
            kind: Code kind of every entry
            name: Name of this hierarchy
        """
        self.kind = coerce_kind(kind)
        if self.kind is None:
            raise ValueError("A hierarchy needs an explicit code kind")
        self.name = name

        self._nodes: Dict[str, HierarchyNode] = {}
        parents: Dict[str, Optional[str]] = {}
        billable: Dict[str, Optional[bool]] = {}
        skipped = 0

        for record in records:
            code = self._normalize(record.get("code"))
            if code is None:
                skipped += 1
                continue
            if code in self._nodes:
                logger.debug(f"Duplicate hierarchy entry {code}, keeping the first")
                continue
            self._nodes[code] = HierarchyNode(
                code=code,
                short_desc=_as_text(record.get("short_desc")),
                long_desc=_as_text(record.get("long_desc")),
            )
            raw_parent = _as_text(record.get("parent"))
            parents[code] = self._normalize(raw_parent) if raw_parent else None
            billable[code] = _as_bool(record.get("billable"))

        if skipped:
            logger.warning(f"Skipped {skipped} unparseable entries while building {name}")

        resolved: Dict[str, Optional[str]] = {}
        for code in self._nodes:
            parent = parents[code]
            if parent is None or parent not in self._nodes or parent == code:
                parent = self._derive_parent(code)
            resolved[code] = parent
        self._break_loops(resolved)

        self._roots: List[HierarchyNode] = []
        for code, node in self._nodes.items():
            parent = resolved[code]
            node.parent = parent
            if parent is None:
                self._roots.append(node)
            else:
                self._nodes[parent].children.append(node)

        for code, node in self._nodes.items():
            flag = billable[code]
            node.billable = node.is_leaf if flag is None else flag

        self._order: Dict[str, int] = {}
        self._coverage: Dict[str, FrozenSet[str]] = {}
        for root in self._roots:
            self._index(root)

        logger.info(f"Initialized {name} hierarchy with {len(self._nodes)} codes")

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        kind: Union[CodeKind, str],
        code_column: str = "code",
        parent_column: str = "parent",
        billable_column: str = "billable",
        short_desc_column: str = "short_desc",
        long_desc_column: str = "long_desc",
        name: str = "DataFrameHierarchy"
    ) -> "Hierarchy":
        """
        Create a hierarchy from a pandas DataFrame.

        Only the code column is required; the others are used when present.
        """
        if code_column not in df.columns:
            raise ValueError(
                f"Code column '{code_column}' not found. "
                f"Available columns: {df.columns.tolist()}"
            )

        columns = {
            "code": code_column,
            "parent": parent_column,
            "billable": billable_column,
            "short_desc": short_desc_column,
            "long_desc": long_desc_column,
        }
        present = {key: col for key, col in columns.items() if col in df.columns}
        df = df.dropna(subset=[code_column])
        records = [
            {key: row[col] for key, col in present.items()}
            for _, row in df.iterrows()
        ]
        return cls(records, kind=kind, name=name)

    @classmethod
    def from_file(
        cls,
        file_path: Union[str, Path],
        kind: Union[CodeKind, str],
        delimiter: str = ",",
        encoding: str = "utf-8",
        name: Optional[str] = None,
        **kwargs
    ) -> "Hierarchy":
        """
        Load a hierarchy from a CSV/TXT file.

        Args:
            file_path: Path to the reference table
            kind: Code kind of every entry
            delimiter: File delimiter (default: ',')
            encoding: File encoding (default: 'utf-8')
            name: Name for this hierarchy (defaults to filename)
            **kwargs: Column names, passed to from_dataframe

        Returns:
            Hierarchy instance
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Hierarchy file not found: {file_path}")

        # Codes must stay strings: "020" is not 20
        df = pd.read_csv(file_path, delimiter=delimiter, encoding=encoding, dtype=str)

        logger.info(f"Loaded {len(df)} hierarchy rows from {file_path.name}")

        return cls.from_dataframe(df, kind=kind, name=name or file_path.stem, **kwargs)

    def _normalize(self, code: Any) -> Optional[str]:
        try:
            return to_short(parse_code(code, kind=self.kind)).short
        except IcdError:
            return None

    def _derive_parent(self, code: str) -> Optional[str]:
        floor = 4 if self.kind == CodeKind.ICD9 and code.startswith("E") else 3
        for end in range(len(code) - 1, floor - 1, -1):
            if code[:end] in self._nodes:
                return code[:end]
        return None

    @staticmethod
    def _returns_to(code: str, resolved: Dict[str, Optional[str]]) -> bool:
        seen = set()
        parent = resolved[code]
        while parent is not None and parent not in seen:
            if parent == code:
                return True
            seen.add(parent)
            parent = resolved[parent]
        return False

    def _break_loops(self, resolved: Dict[str, Optional[str]]):
        """
        Re-link codes whose parent chain leads back to themselves.

        A looping code falls back to its derived parent, or becomes a root
        when that still loops. Every code ends up reachable from a root.
        """
        changed = True
        while changed:
            changed = False
            for code in resolved:
                if not self._returns_to(code, resolved):
                    continue
                derived = self._derive_parent(code)
                fallback = derived if resolved[code] != derived else None
                logger.warning(
                    f"Parent chain of {code} loops back to itself in {self.name}, "
                    f"re-linking it to {fallback or 'the root level'}"
                )
                resolved[code] = fallback
                changed = True

    def _index(self, root: HierarchyNode):
        # Iterative post-order so deep tables do not hit the recursion limit
        stack: List[Tuple[HierarchyNode, bool]] = [(root, False)]
        while stack:
            node, done = stack.pop()
            if not done:
                self._order[node.code] = len(self._order)
                stack.append((node, True))
                for child in reversed(node.children):
                    stack.append((child, False))
                continue
            if node.is_leaf:
                self._coverage[node.code] = frozenset([node.code])
            else:
                covered = set()
                for child in node.children:
                    covered |= self._coverage[child.code]
                if node.billable:
                    covered.add(node.code)
                self._coverage[node.code] = frozenset(covered)

    @property
    def roots(self) -> List[HierarchyNode]:
        return list(self._roots)

    def key(self, code: Any) -> Optional[str]:
        """Short-form lookup key of a code, None if it cannot be parsed."""
        return self._normalize(code)

    def node(self, code: Any) -> HierarchyNode:
        """
        Get the node of a code.

        Raises:
            KeyError: Code is not defined in this hierarchy
        """
        key = self._normalize(code)
        if key is None or key not in self._nodes:
            raise KeyError(f"Code '{code}' not defined in {self.name}")
        return self._nodes[key]

    def is_defined(self, code: Any) -> bool:
        """Check if a code is an entry of this hierarchy. Never raises."""
        key = self._normalize(code)
        return key is not None and key in self._nodes

    def is_billable(self, code: Any) -> bool:
        """Check if a code is defined and billable."""
        key = self._normalize(code)
        return key is not None and key in self._nodes and self._nodes[key].billable

    def filter_defined(self, codes: Iterable[Any]) -> List[Any]:
        """Keep only the codes defined in this hierarchy, preserving order."""
        return [c for c in codes if self.is_defined(c)]

    def filter_billable(self, codes: Iterable[Any]) -> List[Any]:
        return [c for c in codes if self.is_billable(c)]

    def leaves(self, code: Any) -> FrozenSet[str]:
        """
        Leaf coverage of a code: the leaf codes it stands for.

        A billable node with children covers itself as well as its children.
        """
        return self._coverage[self.node(code).code]

    def children(self, code: Any, include_self: bool = True, billable_only: bool = False) -> List[str]:
        """
        All descendants of a code, in hierarchy order.

        Args:
            code: Code to expand
            include_self: Include the code itself
            billable_only: Only return billable codes

        Returns:
            List of short-form codes
        """
        start = self.node(code)
        out: List[str] = []
        stack = [start]
        while stack:
            node = stack.pop()
            if (include_self or node is not start) and (node.billable or not billable_only):
                out.append(node.code)
            stack.extend(reversed(node.children))
        return out

    def as_code(self, code: Any) -> Code:
        """Short-form Code value of a defined code."""
        return parse_code(self.node(code).code, kind=self.kind, form=CodeForm.SHORT)

    def describe(self, code: Any) -> Tuple[str, str]:
        """Return (short_desc, long_desc) of a defined code."""
        node = self.node(code)
        return node.short_desc, node.long_desc

    def to_dataframe(self) -> pd.DataFrame:
        """Export the hierarchy as a reference table."""
        rows = [
            {
                "code": node.code,
                "parent": node.parent,
                "billable": node.billable,
                "short_desc": node.short_desc,
                "long_desc": node.long_desc,
            }
            for node in sorted(self._nodes.values(), key=lambda n: self._order[n.code])
        ]
        return pd.DataFrame(rows, columns=["code", "parent", "billable", "short_desc", "long_desc"])

    def __contains__(self, code: Any) -> bool:
        return self.is_defined(code)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._nodes, key=self._order.__getitem__))

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return (
            f"Hierarchy(name='{self.name}', "
            f"kind='{self.kind.value}', "
            f"total_codes={len(self._nodes)}, "
            f"roots={len(self._roots)})"
        )
