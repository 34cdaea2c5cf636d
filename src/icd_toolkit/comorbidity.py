"""
Core ComorbidityMap class for mapping diagnosis codes to comorbidity categories.

Supports:
- Charlson (Quan/Deyo ICD-9 and ICD-10 maps are bundled)
- Elixhauser, AHRQ or any other grouping loaded from YAML or a dict
- Code ranges in map entries (e.g., "I60-I69", "425.4-425.9")
- Composite code format in records (e.g., DIAGNOSIS//ICD9//4280)
"""

import logging
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

import pandas as pd
import yaml
from tqdm import tqdm

from .code import CodeError, CodeKind, INFER, coerce_kind
from .convert import to_short
from .exceptions import IcdError
from .parser import FormHint, KindHint, parse_code
from .ranges import expand_range

logger = logging.getLogger(__name__)

BUILTIN_MAPS = ("charlson_quan_icd9", "charlson_quan_icd10")

# Charlson et al. (1987) weights
CHARLSON_WEIGHTS = {
    "MI": 1, "CHF": 1, "PVD": 1, "Stroke": 1, "Dementia": 1,
    "Pulmonary": 1, "Rheumatic": 1, "PUD": 1, "LiverMild": 1, "DM": 1,
    "DMcx": 2, "Paralysis": 2, "Renal": 2, "Cancer": 2,
    "LiverSevere": 3, "Mets": 6, "HIV": 6,
}

# (more severe, less severe): the less severe flag is cleared when both are set
CHARLSON_RULES = [
    ("DMcx", "DM"),
    ("LiverSevere", "LiverMild"),
    ("Mets", "Cancer"),
]


def _expand_entry(entry: Any, kind: CodeKind) -> List[str]:
    text = str(entry).strip()
    if "-" in text:
        start, _, end = text.partition("-")
        return expand_range(start.strip(), end.strip(), kind=kind)
    return [to_short(parse_code(text, kind=kind)).short]


class ComorbidityMap:
    """
    Read-only mapping from comorbidity category to diagnosis codes.

    A code belongs to a category when its short form, or any prefix of it
    at least three characters long, is listed for that category. Listing a
    major therefore covers all of its children.

    Usage:
        # Load a bundled map
        charlson = load_builtin_map("charlson_quan_icd10")

        # Categories of one code
        charlson.match("I21.4")            # ['MI']

        # Visit-by-category matrix
        matrix = comorbid(df, charlson, visit_col="hadm_id", code_col="icd_code")
    """

    def __init__(
        self,
        categories: Mapping[str, Iterable[Any]],
        kind: Union[CodeKind, str],
        name: str = "ComorbidityMap",
        rules: Optional[Sequence[Tuple[str, str]]] = None,
        weights: Optional[Mapping[str, int]] = None
    ):
        """
        Initialize a ComorbidityMap.

        Args:
            categories: Category name -> codes or "start-end" ranges
            kind: Code kind of every entry
            name: Name of this map (e.g., "charlson_quan_icd9")
            rules: (more severe, less severe) category pairs
            weights: Category weights for scoring

        Raises:
            ValueError: An entry is not a code or a valid range
        """
        self.kind = coerce_kind(kind)
        if self.kind is None:
            raise ValueError("A comorbidity map needs an explicit code kind")
        self.name = name
        self.rules: List[Tuple[str, str]] = [tuple(r) for r in (rules or [])]
        self.weights: Dict[str, int] = dict(weights or {})

        self._categories: Dict[str, FrozenSet[str]] = {}
        self._index: Dict[str, Set[str]] = {}
        for category, entries in categories.items():
            codes: Set[str] = set()
            for entry in entries:
                try:
                    codes.update(_expand_entry(entry, self.kind))
                except (IcdError, ValueError) as e:
                    raise ValueError(f"Bad entry {entry!r} in category '{category}' of {name}: {e}") from e
            self._categories[category] = frozenset(codes)
            for code in codes:
                self._index.setdefault(code, set()).add(category)

        for severe, mild in self.rules:
            for category in (severe, mild):
                if category not in self._categories:
                    raise ValueError(f"Rule refers to unknown category '{category}' in {name}")

        logger.info(f"Initialized {name} map with {len(self._categories)} categories")

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        name: Optional[str] = None,
        kind: Optional[Union[CodeKind, str]] = None
    ) -> "ComorbidityMap":
        """
        Create a map from a dictionary in the YAML layout.

        Expected keys: 'categories' (required), 'kind' (unless passed),
        'name', 'rules' and 'weights'.
        """
        if "categories" not in data:
            raise ValueError(f"Map definition has no 'categories'. Available keys: {list(data)}")
        map_kind = kind or data.get("kind")
        if map_kind is None:
            raise ValueError("Map definition has no 'kind'")

        return cls(
            data["categories"],
            kind=map_kind,
            name=name or data.get("name", "ComorbidityMap"),
            rules=data.get("rules"),
            weights=data.get("weights"),
        )

    @classmethod
    def from_yaml(cls, file_path: Union[str, Path], name: Optional[str] = None) -> "ComorbidityMap":
        """
        Load a map from a YAML file.

        Args:
            file_path: Path to the YAML map definition
            name: Name for this map (defaults to the file's 'name', then its stem)

        Returns:
            ComorbidityMap instance
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Map file not found: {file_path}")

        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        logger.info(f"Loaded map definition from {file_path.name}")

        return cls.from_dict(data, name=name or data.get("name") or file_path.stem)

    @property
    def categories(self) -> List[str]:
        return list(self._categories)

    def codes(self, category: str) -> FrozenSet[str]:
        """Short-form codes listed for a category."""
        if category not in self._categories:
            raise KeyError(f"Category '{category}' not found. Available categories: {self.categories}")
        return self._categories[category]

    def match(self, code: Any, form: FormHint = INFER) -> List[str]:
        """
        Get the categories of a single code.

        Raises:
            ParseError, ConversionError: The code cannot be read as this map's kind
        """
        short = to_short(parse_code(code, kind=self.kind, form=form)).short
        found: Set[str] = set()
        for end in range(len(short), 2, -1):
            found |= self._index.get(short[:end], set())
        return [c for c in self._categories if c in found]

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, category: object) -> bool:
        return category in self._categories

    def __getitem__(self, category: str) -> FrozenSet[str]:
        return self.codes(category)

    def __repr__(self) -> str:
        return (
            f"ComorbidityMap(name='{self.name}', "
            f"kind='{self.kind.value}', "
            f"categories={len(self._categories)})"
        )


def load_builtin_map(name: str) -> ComorbidityMap:
    """
    Load a map bundled with the package.

    Args:
        name: One of BUILTIN_MAPS
    """
    if name not in BUILTIN_MAPS:
        raise KeyError(f"Map '{name}' not found. Available maps: {list(BUILTIN_MAPS)}")
    resource = files("icd_toolkit.data") / f"{name}.yaml"
    data = yaml.safe_load(resource.read_text(encoding="utf-8"))
    return ComorbidityMap.from_dict(data, name=name)


@dataclass
class ComorbidityResult:
    """
    Output of assign_comorbidities().

    Attributes:
        matrix: Boolean DataFrame, one row per visit, one column per category
        errors: Records whose code could not be read; index is the row label
    """

    matrix: pd.DataFrame
    errors: List[CodeError] = field(default_factory=list)


def _records_frame(records: Union[pd.DataFrame, Mapping[Any, Iterable[Any]]], visit_col: str, code_col: str) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        for column in (visit_col, code_col):
            if column not in records.columns:
                raise ValueError(
                    f"Column '{column}' not found. "
                    f"Available columns: {records.columns.tolist()}"
                )
        return records[[visit_col, code_col]]

    rows = []
    for visit, codes in records.items():
        codes = list(codes)
        # Visits without codes still get a row in the matrix
        if not codes:
            rows.append((visit, None))
        rows.extend((visit, code) for code in codes)
    return pd.DataFrame(rows, columns=[visit_col, code_col])


def assign_comorbidities(
    records: Union[pd.DataFrame, Mapping[Any, Iterable[Any]]],
    cmap: ComorbidityMap,
    visit_col: str = "visit_id",
    code_col: str = "code",
    form: FormHint = INFER,
    apply_rules: bool = False,
    show_progress: bool = False
) -> ComorbidityResult:
    """
    Flag the comorbidity categories of every visit.

    Visits are independent: a code that cannot be read is recorded in
    ``errors`` and the rest of the batch is processed normally. Missing codes
    are skipped silently.

    Args:
        records: Long DataFrame (one row per visit/code) or a mapping of
            visit id -> codes
        cmap: ComorbidityMap to apply
        visit_col: Column holding visit ids
        code_col: Column holding codes
        form: Form hint for the codes
        apply_rules: Apply the map's severity rules to the result
        show_progress: Show a progress bar over distinct codes

    Returns:
        ComorbidityResult with the boolean matrix and per-record errors
    """
    frame = _records_frame(records, visit_col, code_col)
    visits = pd.unique(frame[visit_col])

    distinct = pd.unique(frame[code_col].dropna())
    code_iter = tqdm(distinct, desc=f"Matching {cmap.name}", unit="code") if show_progress else distinct

    matched: Dict[Any, List[str]] = {}
    failures: Dict[Any, IcdError] = {}
    for code in code_iter:
        try:
            matched[code] = cmap.match(code, form=form)
        except IcdError as e:
            failures[code] = e

    matrix = pd.DataFrame(False, index=pd.Index(visits, name=visit_col), columns=cmap.categories)
    errors: List[CodeError] = []
    for label, visit, code in zip(frame.index, frame[visit_col], frame[code_col]):
        if code is None or (isinstance(code, float) and code != code):
            continue
        if code in failures:
            errors.append(CodeError(index=label, raw=code, error=failures[code]))
            continue
        for category in matched[code]:
            matrix.at[visit, category] = True

    if errors:
        logger.warning(f"{len(errors)} records had unreadable codes for {cmap.name}")
    logger.info(f"Assigned {cmap.name} comorbidities for {len(matrix)} visits")

    if apply_rules and cmap.rules:
        matrix = apply_hierarchy(matrix, cmap.rules)
    return ComorbidityResult(matrix=matrix, errors=errors)


def comorbid(
    records: Union[pd.DataFrame, Mapping[Any, Iterable[Any]]],
    cmap: ComorbidityMap,
    visit_col: str = "visit_id",
    code_col: str = "code",
    **kwargs
) -> pd.DataFrame:
    """Visit-by-category boolean matrix; see assign_comorbidities."""
    return assign_comorbidities(records, cmap, visit_col=visit_col, code_col=code_col, **kwargs).matrix


def apply_hierarchy(matrix: pd.DataFrame, rules: Iterable[Tuple[str, str]] = CHARLSON_RULES) -> pd.DataFrame:
    """
    Clear less severe categories where the more severe one is flagged.

    Args:
        matrix: Boolean visit-by-category matrix
        rules: (more severe, less severe) pairs; pairs with a missing column
            are ignored

    Returns:
        A new matrix
    """
    matrix = matrix.copy()
    for severe, mild in rules:
        if severe in matrix.columns and mild in matrix.columns:
            matrix.loc[matrix[severe], mild] = False
    return matrix


def charlson_score(
    matrix: pd.DataFrame,
    weights: Optional[Mapping[str, int]] = None,
    apply_rules: bool = True
) -> pd.Series:
    """
    Weighted Charlson comorbidity index per visit.

    Args:
        matrix: Boolean matrix with Charlson category columns
        weights: Category weights (default: CHARLSON_WEIGHTS)
        apply_rules: Apply CHARLSON_RULES first so a condition is not
            counted at two severities

    Returns:
        Integer Series named 'charlson', indexed like ``matrix``
    """
    weights = dict(weights or CHARLSON_WEIGHTS)
    if apply_rules:
        matrix = apply_hierarchy(matrix, CHARLSON_RULES)

    scored = [c for c in matrix.columns if c in weights]
    if not scored:
        logger.warning("No Charlson categories found in matrix columns")
    score = pd.Series(0, index=matrix.index, name="charlson", dtype="int64")
    for category in scored:
        score += matrix[category].astype("int64") * weights[category]
    return score
