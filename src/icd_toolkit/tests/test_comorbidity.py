"""
Unit tests for ComorbidityMap, comorbidity assignment and scoring.

Run with: python -m pytest test_comorbidity.py
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from icd_toolkit import ComorbidityMap, ParseError, load_builtin_map
from icd_toolkit.comorbidity import (
    BUILTIN_MAPS,
    apply_hierarchy,
    assign_comorbidities,
    charlson_score,
    comorbid,
)


@pytest.fixture
def small_map():
    """A two-category ICD-9 map"""
    return ComorbidityMap(
        {'CHF': ['428', '425.4-425.6'], 'HTN': ['401']},
        kind='icd9',
        name='small'
    )


@pytest.fixture
def charlson_icd9():
    return load_builtin_map('charlson_quan_icd9')


class TestComorbidityMap:
    """Test cases for ComorbidityMap"""

    def test_initialization(self, small_map):
        assert len(small_map) == 2
        assert small_map.categories == ['CHF', 'HTN']
        assert 'CHF' in small_map
        assert small_map.name == 'small'

    def test_ranges_expanded(self, small_map):
        assert small_map['CHF'] == frozenset({'428', '4254', '4255', '4256'})

    def test_match_children_of_listed_major(self, small_map):
        assert small_map.match('428.0') == ['CHF']
        assert small_map.match('42541') == ['CHF']
        assert small_map.match('4011') == ['HTN']
        assert small_map.match('4257') == []

    def test_match_composite(self, small_map):
        assert small_map.match('DIAGNOSIS//ICD9//4280') == ['CHF']

    def test_match_malformed(self, small_map):
        with pytest.raises(ParseError):
            small_map.match('bad!')

    def test_unknown_category(self, small_map):
        with pytest.raises(KeyError):
            small_map.codes('Renal')

    def test_bad_entry(self):
        with pytest.raises(ValueError):
            ComorbidityMap({'X': ['401-399']}, kind='icd9')
        with pytest.raises(ValueError):
            ComorbidityMap({'X': ['bad!']}, kind='icd9')

    def test_bad_rule(self):
        with pytest.raises(ValueError):
            ComorbidityMap({'DM': ['250']}, kind='icd9', rules=[('DMcx', 'DM')])

    def test_needs_kind(self):
        with pytest.raises(ValueError):
            ComorbidityMap.from_dict({'categories': {'HTN': ['401']}})

    def test_from_dict(self):
        cmap = ComorbidityMap.from_dict({
            'name': 'htn',
            'kind': 'icd10',
            'categories': {'HTN': ['I10', 'I11-I13']},
        })
        assert cmap.name == 'htn'
        assert cmap.match('I12.9') == ['HTN']

    def test_from_yaml(self, tmp_path):
        path = tmp_path / 'liver.yaml'
        path.write_text(
            "kind: icd9\n"
            "categories:\n"
            "  LiverMild: ['571']\n"
            "  LiverSevere: ['572.2-572.8']\n"
            "rules:\n"
            "  - [LiverSevere, LiverMild]\n"
        )
        cmap = ComorbidityMap.from_yaml(path)
        assert cmap.name == 'liver'
        assert cmap.rules == [('LiverSevere', 'LiverMild')]
        assert cmap.match('5724') == ['LiverSevere']

    def test_from_yaml_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ComorbidityMap.from_yaml(tmp_path / 'nope.yaml')


class TestBuiltinMaps:
    """Test cases for the bundled Charlson maps"""

    @pytest.mark.parametrize("name", BUILTIN_MAPS)
    def test_loads(self, name):
        cmap = load_builtin_map(name)
        assert len(cmap) == 17
        assert cmap.name == name

    def test_unknown_map(self):
        with pytest.raises(KeyError):
            load_builtin_map('elixhauser')

    @pytest.mark.parametrize("code,expected", [
        ('4280', ['CHF']),
        ('42541', ['CHF']),
        ('V434', ['PVD']),
        ('25040', ['DMcx']),
        ('25000', ['DM']),
        ('0420', ['HIV']),
        ('1970', ['Mets']),
        ('4011', []),
    ])
    def test_icd9_matches(self, charlson_icd9, code, expected):
        assert charlson_icd9.match(code) == expected

    def test_icd10_matches(self):
        cmap = load_builtin_map('charlson_quan_icd10')
        assert cmap.match('I21.4') == ['MI']
        assert cmap.match('E11.22') == ['DMcx']
        assert cmap.match('C78.0') == ['Mets']
        assert cmap.match('I10') == []


class TestAssign:
    """Test cases for assigning comorbidities to visits"""

    def test_dataframe_input(self, charlson_icd9):
        df = pd.DataFrame({
            'visit_id': [1, 1, 2, 3],
            'code': ['4280', '25040', '4011', 'V434'],
        })
        result = assign_comorbidities(df, charlson_icd9)

        assert result.matrix.shape == (3, 17)
        assert result.matrix.loc[1, 'CHF']
        assert result.matrix.loc[1, 'DMcx']
        assert not result.matrix.loc[2].any()
        assert result.matrix.loc[3, 'PVD']
        assert result.errors == []

    def test_bad_code_recorded(self, charlson_icd9):
        df = pd.DataFrame({
            'hadm_id': ['a', 'a', 'b'],
            'icd_code': ['4280', 'bad!', '410.1'],
        })
        result = assign_comorbidities(df, charlson_icd9, visit_col='hadm_id', code_col='icd_code')

        assert result.matrix.loc['a', 'CHF']
        assert result.matrix.loc['b', 'MI']
        assert len(result.errors) == 1
        assert result.errors[0].index == 1
        assert result.errors[0].raw == 'bad!'

    def test_missing_codes_skipped(self, small_map):
        df = pd.DataFrame({'visit_id': [1, 2], 'code': ['428', None]})
        result = assign_comorbidities(df, small_map)
        assert list(result.matrix.index) == [1, 2]
        assert result.errors == []

    def test_mapping_input(self, small_map):
        matrix = comorbid({'v1': ['4011'], 'v2': [], 'v3': ['428.0', '401']}, small_map)
        assert list(matrix.index) == ['v1', 'v2', 'v3']
        assert matrix.loc['v1'].tolist() == [False, True]
        assert matrix.loc['v2'].tolist() == [False, False]
        assert matrix.loc['v3'].tolist() == [True, True]

    def test_missing_column(self, small_map):
        df = pd.DataFrame({'visit': [1], 'code': ['428']})
        with pytest.raises(ValueError):
            comorbid(df, small_map)

    def test_apply_rules(self, charlson_icd9):
        df = pd.DataFrame({'visit_id': [1, 1], 'code': ['25000', '25040']})
        plain = comorbid(df, charlson_icd9)
        ruled = comorbid(df, charlson_icd9, apply_rules=True)
        assert plain.loc[1, 'DM'] and plain.loc[1, 'DMcx']
        assert not ruled.loc[1, 'DM'] and ruled.loc[1, 'DMcx']

    def test_progress_bar(self, small_map):
        df = pd.DataFrame({'visit_id': [1], 'code': ['428']})
        matrix = comorbid(df, small_map, show_progress=True)
        assert matrix.loc[1, 'CHF']


class TestScoring:
    """Test cases for hierarchy rules and the Charlson score"""

    def test_apply_hierarchy_copies(self):
        matrix = pd.DataFrame({'Mets': [True, False], 'Cancer': [True, True]})
        ruled = apply_hierarchy(matrix)
        assert ruled['Cancer'].tolist() == [False, True]
        assert matrix['Cancer'].tolist() == [True, True]

    def test_apply_hierarchy_missing_columns(self):
        matrix = pd.DataFrame({'DM': [True]})
        assert apply_hierarchy(matrix)['DM'].tolist() == [True]

    def test_score(self, charlson_icd9):
        df = pd.DataFrame({
            'visit_id': [1, 1, 1, 2, 2, 3],
            'code': ['25000', '25040', '410', '1970', '1500', '4011'],
        })
        score = charlson_score(comorbid(df, charlson_icd9))
        assert score.name == 'charlson'
        # DMcx (2) + MI (1); DM is dropped
        assert score.loc[1] == 3
        # Mets (6); Cancer is dropped
        assert score.loc[2] == 6
        assert score.loc[3] == 0

    def test_score_without_rules(self, charlson_icd9):
        df = pd.DataFrame({'visit_id': [1, 1], 'code': ['25000', '25040']})
        score = charlson_score(comorbid(df, charlson_icd9), apply_rules=False)
        assert score.loc[1] == 3

    def test_custom_weights(self):
        matrix = pd.DataFrame({'MI': [True], 'CHF': [True]})
        assert charlson_score(matrix, weights={'MI': 5, 'CHF': 1}).iloc[0] == 6


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
