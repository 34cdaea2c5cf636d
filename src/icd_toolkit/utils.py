"""
Utility functions for working with code columns in DataFrames.
"""

import pandas as pd
from typing import Any, Dict, List, Union
import logging

from .code import CodeForm
from .convert import convert_codes
from .hierarchy import Hierarchy
from .parser import FormHint, KindHint
from .validity import is_valid

logger = logging.getLogger(__name__)


def validate_reference_file(
    file_path: str,
    kind: KindHint,
    code_column: str = "code",
    delimiter: str = ",",
    encoding: str = "utf-8",
    sample_size: int = 5
) -> Dict:
    """
    Validate a hierarchy reference table and return statistics.

    Args:
        file_path: Path to the reference table
        kind: Code kind of the table
        code_column: Name of code column
        delimiter: File delimiter
        encoding: File encoding
        sample_size: Number of invalid codes to return

    Returns:
        Dictionary with validation results and statistics
    """
    try:
        df = pd.read_csv(file_path, delimiter=delimiter, encoding=encoding, dtype=str)
    except (OSError, pd.errors.ParserError) as e:
        logger.error(f"Error reading reference file {file_path}: {e}")
        return {
            "valid": False,
            "error": str(e)
        }

    results = {
        "valid": True,
        "total_rows": len(df),
        "columns": df.columns.tolist(),
        "has_code_column": code_column in df.columns,
    }

    if not results["has_code_column"]:
        results["valid"] = False
        results["error"] = "Required columns not found"
        return results

    codes = df[code_column]
    invalid = [c for c in codes.dropna() if not is_valid(c, kind=kind)]
    results["null_codes"] = int(codes.isnull().sum())
    results["unique_codes"] = int(codes.nunique())
    results["duplicate_codes"] = len(codes.dropna()) - results["unique_codes"]
    results["invalid_codes"] = len(invalid)
    results["invalid_sample"] = invalid[:sample_size]
    results["valid"] = not invalid and results["null_codes"] == 0

    return results


def convert_column(
    df: pd.DataFrame,
    code_column: str,
    to: Union[CodeForm, str] = CodeForm.SHORT,
    kind: KindHint = "infer",
    form: FormHint = "infer",
    output_column: str = None,
    inplace: bool = False
) -> pd.DataFrame:
    """
    Convert a code column to short or decimal form.

    Codes that cannot be converted become None and are logged.

    Args:
        df: DataFrame with code column
        code_column: Name of column containing codes
        to: Target form
        kind: Kind hint
        form: Form hint for the existing codes
        output_column: Column to write (defaults to overwriting code_column)
        inplace: Modify DataFrame inplace

    Returns:
        DataFrame with converted codes
    """
    if code_column not in df.columns:
        raise ValueError(f"Column '{code_column}' not found in DataFrame")

    if not inplace:
        df = df.copy()

    result = convert_codes(df[code_column].tolist(), to=to, kind=kind, form=form)
    df[output_column or code_column] = pd.Series(result.values, index=df.index, dtype=object)

    logger.info(f"Converted {len(df) - len(result.errors)} codes in '{code_column}' to {to}")

    return df


def find_undefined_codes(
    df: pd.DataFrame,
    code_column: str,
    hierarchy: Hierarchy,
    return_dataframe: bool = True
) -> Union[pd.DataFrame, List[Any]]:
    """
    Find codes in a DataFrame that are not defined in a hierarchy.

    Args:
        df: DataFrame containing codes
        code_column: Name of column with codes
        hierarchy: Reference hierarchy
        return_dataframe: If True, return DataFrame of undefined codes

    Returns:
        DataFrame or list with undefined codes
    """
    if code_column not in df.columns:
        raise ValueError(f"Column '{code_column}' not found in DataFrame")

    codes = df[code_column].dropna().unique()
    missing = [code for code in codes if not hierarchy.is_defined(code)]

    if len(codes):
        logger.info(
            f"Found {len(missing)} undefined codes out of "
            f"{len(codes)} unique codes ({len(missing)/len(codes)*100:.1f}%)"
        )

    if return_dataframe:
        return pd.DataFrame({"undefined_code": missing})

    return missing


def enrich_dataframe(
    df: pd.DataFrame,
    code_column: str,
    hierarchy: Hierarchy,
    description_column: str = "description",
    long: bool = True,
    default: str = "Unknown",
    inplace: bool = False
) -> pd.DataFrame:
    """
    Add description column to DataFrame based on code column.

    Args:
        df: DataFrame with code column
        code_column: Name of column containing codes
        hierarchy: Reference hierarchy with descriptions
        description_column: Name for new description column
        long: Use long descriptions instead of short ones
        default: Description for undefined codes
        inplace: Modify DataFrame inplace

    Returns:
        DataFrame with added description column
    """
    if not inplace:
        df = df.copy()

    if code_column not in df.columns:
        raise ValueError(f"Column '{code_column}' not found in DataFrame")

    def describe(code):
        if not hierarchy.is_defined(code):
            return default
        short_desc, long_desc = hierarchy.describe(code)
        return long_desc if long else short_desc

    df[description_column] = df[code_column].apply(describe)

    logger.info(f"Added '{description_column}' column to DataFrame")

    return df
