"""
Unit tests for code parsing and the Code / CodeSet types.

Run with: python -m pytest test_parser.py
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from icd_toolkit import AmbiguousKindError, Code, CodeKind, CodeSet, ParseError
from icd_toolkit.code import coerce_form, coerce_kind, CodeForm
from icd_toolkit.parser import parse_candidates, parse_code, parse_code_set, parse_codes


class TestKindInference:
    """Test cases for inferring ICD-9 vs ICD-10"""

    def test_numeric_is_icd9(self):
        """All-digit codes are ICD-9"""
        assert parse_code("4011").kind == CodeKind.ICD9
        assert parse_code("401.1").kind == CodeKind.ICD9

    def test_letter_is_icd10(self):
        """Leading letters other than E/V are ICD-10"""
        assert parse_code("I10").kind == CodeKind.ICD10
        assert parse_code("S72.001A").kind == CodeKind.ICD10

    def test_v10_is_ambiguous(self):
        """V10 is valid under both kinds, so inference must refuse"""
        with pytest.raises(AmbiguousKindError) as excinfo:
            parse_code("V10")

        kinds = {c.kind for c in excinfo.value.candidates}
        assert kinds == {CodeKind.ICD9, CodeKind.ICD10}

    def test_hint_resolves_ambiguity(self):
        """An explicit hint wins over inference"""
        assert parse_code("V10", kind="icd9").kind == CodeKind.ICD9
        assert parse_code("V10", kind="icd10").kind == CodeKind.ICD10

    def test_e_code_split_depends_on_kind(self):
        """ICD-9 E codes have a four character major"""
        icd9 = parse_code("E8801", kind="icd9")
        icd10 = parse_code("E8801", kind="icd10")
        assert (icd9.major, icd9.minor) == ("E880", "1")
        assert (icd10.major, icd10.minor) == ("E88", "01")

    def test_only_one_kind_valid(self):
        """An E code only valid as ICD-9 is not ambiguous"""
        code = parse_code("E800.0")
        assert code.kind == CodeKind.ICD9

    def test_parse_candidates(self):
        """parse_candidates tolerates ambiguity"""
        assert len(parse_candidates("V10")) == 2
        assert [c.kind for c in parse_candidates("I10")] == [CodeKind.ICD10]

    def test_unknown_shape_is_ambiguous(self):
        """Codes matching no grammar and no inference rule are ambiguous"""
        with pytest.raises(AmbiguousKindError):
            parse_code("1A")


class TestStructure:
    """Test cases for structural parsing"""

    def test_short_three_chars_is_major(self):
        """'020' is major 020, never 2.0"""
        code = parse_code("020")
        assert code.major == "020"
        assert code.minor == ""
        assert code.is_short

    def test_short_split(self):
        code = parse_code("39101")
        assert (code.major, code.minor) == ("391", "01")

    def test_decimal_split(self):
        code = parse_code("10.20")
        assert (code.major, code.minor) == ("10", "20")
        assert not code.is_short

    def test_whitespace_and_case(self):
        code = parse_code("  v10.1 ", kind="icd9")
        assert code.major == "V10"
        assert code.minor == "1"

    def test_short_reproduced(self):
        """major + minor reproduces the short form"""
        code = parse_code("391.01")
        assert code.short == "39101"
        assert code.decimal == "391.01"
        assert str(code) == "391.01"

    @pytest.mark.parametrize("text", ["", "   ", ".5", "39.1.2", "401-1", "4 01"])
    def test_malformed(self, text):
        with pytest.raises(ParseError):
            parse_code(text)

    def test_missing(self):
        with pytest.raises(ParseError):
            parse_code(None)
        with pytest.raises(ParseError):
            parse_code(float("nan"))

    def test_short_hint_rejects_dot(self):
        with pytest.raises(ParseError):
            parse_code("391.0", form="short")

    def test_decimal_hint_without_dot(self):
        """Under a decimal hint the whole text is the major"""
        code = parse_code("100", form="decimal")
        assert code.major == "100"
        assert code.form == CodeForm.DECIMAL

    def test_strict_rejects_grammar(self):
        assert parse_code("1234.5").major == "1234"
        with pytest.raises(ParseError):
            parse_code("1234.5", strict=True)

    def test_code_passthrough(self):
        code = Code(CodeKind.ICD9, "391", "0")
        assert parse_code(code) is code
        with pytest.raises(ParseError):
            parse_code(code, kind="icd10")


class TestComposite:
    """Test cases for composite codes feeding the parser"""

    def test_composite_sets_kind(self):
        code = parse_code("DIAGNOSIS//ICD9//V101")
        assert code.kind == CodeKind.ICD9
        assert code.short == "V101"

    def test_mimic_composite(self):
        code = parse_code("DIAGNOSIS//ICD//10//R531")
        assert code.kind == CodeKind.ICD10
        assert (code.major, code.minor) == ("R53", "1")

    def test_composite_disagrees_with_hint(self):
        with pytest.raises(ParseError):
            parse_code("DIAGNOSIS//ICD9//4011", kind="icd10")

    def test_unsupported_system(self):
        with pytest.raises(ParseError):
            parse_code("PROCEDURE//CCI//1VG52HA")


class TestBatch:
    """Test cases for batch parsing"""

    def test_failures_do_not_abort(self):
        result = parse_codes(["4011", "bad!", "I10", "V10"])

        assert len(result.values) == 4
        assert result.values[0].short == "4011"
        assert result.values[1] is None
        assert result.values[2].short == "I10"
        assert result.values[3] is None
        assert [e.index for e in result.errors] == [1, 3]
        assert isinstance(result.errors[1].error, AmbiguousKindError)
        assert not result.ok

    def test_parse_code_set(self):
        codes, errors = parse_code_set(["4011", "401.1", "4019", "x?"])
        assert codes.shorts() == ["4011", "4019"]
        assert len(errors) == 1


class TestCodeSet:
    """Test cases for CodeSet"""

    def test_deduplicates_by_short_form(self):
        codes = CodeSet([
            Code(CodeKind.ICD9, "391", "0"),
            Code(CodeKind.ICD9, "391", "0", is_short=False),
            Code(CodeKind.ICD9, "401"),
        ])
        assert len(codes) == 2
        assert codes.to_list() == ["3910", "401"]

    def test_same_text_different_kind(self):
        codes = CodeSet([Code(CodeKind.ICD9, "V10"), Code(CodeKind.ICD10, "V10")])
        assert len(codes) == 2

    def test_contains(self):
        codes = CodeSet([Code(CodeKind.ICD9, "391", "0")])
        assert "3910" in codes
        assert Code(CodeKind.ICD9, "391", "0") in codes
        assert "3911" not in codes

    def test_rejects_non_codes(self):
        with pytest.raises(TypeError):
            CodeSet(["3910"])

    def test_empty_major(self):
        with pytest.raises(ValueError):
            Code(CodeKind.ICD9, "")


def test_coerce_hints():
    """Hint spellings"""
    assert coerce_kind("ICD-9-CM") == CodeKind.ICD9
    assert coerce_kind("10") == CodeKind.ICD10
    assert coerce_kind("infer") is None
    assert coerce_form("Decimal") == CodeForm.DECIMAL
    with pytest.raises(ValueError):
        coerce_kind("icd11")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
