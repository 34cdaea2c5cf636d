"""
Unit tests for composite code parsing functionality.

Tests the ability to parse codes in composite format:
- DIAGNOSIS//ICD9//4011
- DIAGNOSIS//ICD//10//R531
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from icd_toolkit import CodeKind
from icd_toolkit.composite import (
    parse_composite_code,
    is_composite_code,
    extract_plain_code,
    extract_kind
)


class TestCompositeCodeParsing:
    """Test cases for composite code parsing"""

    def test_parse_icd9_code(self):
        """Test parsing ICD-9 composite code"""
        result = parse_composite_code("DIAGNOSIS//ICD9//4011")
        assert result is not None
        assert result['prefix'] == 'DIAGNOSIS'
        assert result['system'] == 'ICD9'
        assert result['kind'] == 'icd9'
        assert result['code'] == '4011'

    def test_parse_icd10_code(self):
        """Test parsing ICD-10-CM composite code"""
        result = parse_composite_code("DIAGNOSIS//ICD10CM//I10")
        assert result is not None
        assert result['kind'] == 'icd10'
        assert result['code'] == 'I10'

    def test_parse_versioned_code(self):
        """Test parsing the ICD//VERSION//CODE event format"""
        result = parse_composite_code("DIAGNOSIS//ICD//9//4280")
        assert result['system'] == 'ICD9'
        assert result['kind'] == 'icd9'
        assert result['code'] == '4280'

        result = parse_composite_code("diagnosis//icd//10//R531")
        assert result['prefix'] == 'DIAGNOSIS'
        assert result['kind'] == 'icd10'

    def test_parse_with_whitespace(self):
        """Test parsing with extra whitespace and a trailing tab"""
        result = parse_composite_code("  DIAGNOSIS // ICD9 // 4011  ")
        assert result is not None
        assert result['code'] == '4011'

        result = parse_composite_code("DIAGNOSIS//ICD9//V101\t")
        assert result['code'] == 'V101'

    def test_parse_plain_code_returns_none(self):
        """Test that plain codes return None"""
        assert parse_composite_code("4011") is None
        assert parse_composite_code("I10.9") is None
        assert parse_composite_code("V10") is None

    def test_parse_invalid_format(self):
        """Test invalid formats return None"""
        assert parse_composite_code("DIAGNOSIS/ICD9/4011") is None  # Single slash
        assert parse_composite_code("DIAGNOSIS//4011") is None  # Missing system
        assert parse_composite_code("//ICD9//4011") is None  # Missing prefix
        assert parse_composite_code("") is None
        assert parse_composite_code(None) is None

    def test_non_icd_system(self):
        """Non-ICD systems parse, but carry no kind"""
        result = parse_composite_code("PROCEDURE//CCI//1VG52HA")
        assert result['system'] == 'CCI'
        assert result['kind'] is None

    def test_is_composite_code(self):
        """Test is_composite_code helper"""
        assert is_composite_code("DIAGNOSIS//ICD9//4011") is True
        assert is_composite_code("DIAGNOSIS//ICD//10//R531") is True
        assert is_composite_code("4011") is False
        assert is_composite_code("I10.9") is False

    def test_extract_plain_code(self):
        """Test extracting plain code from composite"""
        assert extract_plain_code("DIAGNOSIS//ICD9//4011") == "4011"
        assert extract_plain_code("DIAGNOSIS//ICD//10//R531") == "R531"
        assert extract_plain_code("I10.9") == "I10.9"  # Plain code unchanged

    def test_extract_kind(self):
        """Test extracting the code kind from composite code"""
        assert extract_kind("DIAGNOSIS//ICD9//4011") == CodeKind.ICD9
        assert extract_kind("DIAGNOSIS//ICD-10-CA//M1000") == CodeKind.ICD10
        assert extract_kind("PROCEDURE//CCI//1VG52HA") is None
        assert extract_kind("I10.9") is None  # Plain code has no system

    def test_system_aliases(self):
        """Test various system name formats map to the same kind"""
        result1 = parse_composite_code("DIAGNOSIS//ICD10CM//I10")
        result2 = parse_composite_code("DIAGNOSIS//ICD-10-CM//I10")
        result3 = parse_composite_code("DIAGNOSIS//icd10//I10")

        assert result1['kind'] == result2['kind'] == result3['kind'] == 'icd10'


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
