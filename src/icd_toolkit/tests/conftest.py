"""
Shared fixtures for icd_toolkit tests.
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from icd_toolkit import Hierarchy


@pytest.fixture
def icd9_hierarchy_data():
    """A small slice of the ICD-9-CM tabular list"""
    return pd.DataFrame({
        'code': [
            '020', '0200', '0209',
            '391', '3910', '3911', '3912', '3918', '3919',
            '392', '3920', '3929',
            '401', '4010', '4011', '4019',
            'V10', 'V100', 'V1000', 'V1001', 'V101', 'V1011', 'V1012',
        ],
        'billable': [
            False, True, True,
            False, True, True, True, True, True,
            False, True, True,
            False, True, True, True,
            False, False, True, True, False, True, True,
        ],
        'short_desc': [
            'Plague', 'Bubonic plague', 'Plague NOS',
            'Rheumatic fever w heart involvement', 'Ac rheumatic pericarditis',
            'Ac rheumatic endocarditis', 'Ac rheumatic myocarditis',
            'Ac rheumat hrt dis NEC', 'Ac rheumat hrt dis NOS',
            'Rheumatic chorea', 'Rheum chorea w hrt invol', 'Rheumatic chorea NOS',
            'Essential hypertension', 'Malignant hypertension',
            'Benign hypertension', 'Hypertension NOS',
            'Hx of malignant neoplasm', 'Hx of GI malignancy', 'Hx-gi malignancy NOS',
            'Hx-tongue malignancy', 'Hx of lung malignancy', 'Hx-bronchogenic malignancy',
            'Hx-tracheal malignancy',
        ],
        'long_desc': [
            'Plague', 'Bubonic plague', 'Plague, unspecified',
            'Rheumatic fever with heart involvement', 'Acute rheumatic pericarditis',
            'Acute rheumatic endocarditis', 'Acute rheumatic myocarditis',
            'Other acute rheumatic heart disease', 'Acute rheumatic heart disease, unspecified',
            'Rheumatic chorea', 'Rheumatic chorea with heart involvement',
            'Rheumatic chorea without mention of heart involvement',
            'Essential hypertension', 'Malignant essential hypertension',
            'Benign essential hypertension', 'Unspecified essential hypertension',
            'Personal history of malignant neoplasm',
            'Personal history of malignant neoplasm of gastrointestinal tract',
            'Personal history of malignant neoplasm of gastrointestinal tract, unspecified',
            'Personal history of malignant neoplasm of tongue',
            'Personal history of malignant neoplasm of trachea, bronchus, and lung',
            'Personal history of malignant neoplasm of bronchus and lung',
            'Personal history of malignant neoplasm of trachea',
        ],
    })


@pytest.fixture
def icd9_hierarchy(icd9_hierarchy_data):
    """ICD-9 hierarchy built from the sample table"""
    return Hierarchy.from_dataframe(icd9_hierarchy_data, kind='icd9', name='icd9_sample')


@pytest.fixture
def icd9_hierarchy_file(icd9_hierarchy_data, tmp_path):
    """The sample table written to CSV"""
    path = tmp_path / 'icd9_hierarchy.csv'
    icd9_hierarchy_data.to_csv(path, index=False)
    return path
