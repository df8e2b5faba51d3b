import sys
import importlib.util
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Ensure src/ is on sys.path so tests can import the package without installing
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / 'src') not in sys.path:
    sys.path.insert(0, str(ROOT / 'src'))


def make_frame(subject_id, start, days, per_day=4, value_col='value', value=100.0,
               time_col='timestamp', skip_days=(), id_col='participant_id'):
    """Build one subject's frame with `per_day` evenly spaced readings per day."""
    rows = []
    base = pd.Timestamp(start)
    for d in range(days):
        if d in skip_days:
            continue
        for i in range(per_day):
            rows.append({
                id_col: subject_id,
                time_col: base + pd.Timedelta(days=d, hours=i * (24 // max(per_day, 1))),
                value_col: value,
            })
    return pd.DataFrame(rows)


@pytest.fixture
def small_dataset():
    """In-memory dataset: modality -> {subject_id -> DataFrame}."""
    cgm_a = make_frame('1001', '2024-01-01', 20, per_day=6, value_col='glucose', value=110.0)
    cgm_b = make_frame('1002', '2024-01-01', 5, per_day=6, value_col='glucose', value=200.0)
    cgm_c = make_frame('1003', '2024-02-01', 15, per_day=6, value_col='glucose', value=90.0,
                       skip_days=(3, 4, 10))
    hr_a = make_frame('1001', '2024-01-01', 12, per_day=4, value_col='heart_rate', value=65.0)
    hr_b = make_frame('1002', '2024-01-03', 3, per_day=4, value_col='heart_rate', value=250.0)
    hr_b.loc[0, 'heart_rate'] = np.nan
    sleep_a = make_frame('1001', '2024-01-01', 11, per_day=1, value_col='sleep_stage_state',
                         value='light', time_col='start_time')

    return {
        'cgm': {'1001': cgm_a, '1002': cgm_b, '1003': cgm_c},
        'heart_rate': {'1001': hr_a, '1002': hr_b},
        'sleep': {'1001': sleep_a},
    }


@pytest.fixture
def data_dir(tmp_path):
    """On-disk dataset in every accepted payload layout."""
    data = tmp_path / 'data'
    data.mkdir()

    # list of per-subject frames, timestamps as ISO strings
    cgm = [
        make_frame('1001', '2024-01-01', 14, per_day=6, value_col='glucose', value=120.0),
        make_frame('1002', '2024-01-01', 3, per_day=6, value_col='glucose', value=60.0),
    ]
    for df in cgm:
        df['timestamp'] = df['timestamp'].dt.strftime('%Y-%m-%dT%H:%M:%SZ')
    pd.to_pickle(cgm, data / 'cgm.pkl')

    # dict keyed by subject id
    heart_rate = {
        1001: make_frame('1001', '2024-01-01', 12, value_col='heart_rate', value=70.0),
        1003: make_frame('1003', '2024-01-05', 10, value_col='heart_rate', value=58.0),
    }
    pd.to_pickle(heart_rate, data / 'heart_rate.pkl')

    # a single frame holding every subject
    clinical = pd.DataFrame({
        'participant_id': [1001, 1002, 1003],
        'visit_date': ['2024-01-02', '2024-01-02', '2024-01-06'],
        'age': [54, np.nan, 61],
        'hba1c': [6.1, 7.4, np.nan],
    })
    pd.to_pickle(clinical, data / 'clinical.pkl')

    pd.DataFrame({
        'modality': ['cgm', 'heart_rate', 'clinical'],
        'column': ['glucose', 'heart_rate', 'hba1c'],
        'description': ['Interstitial glucose', 'Heart rate', 'Glycated haemoglobin'],
        'unit': ['mg/dL', 'bpm', '%'],
    }).to_csv(data / 'column_metadata.csv', index=False)

    return data


def load_script(name):
    """Import a script under scripts/ as a module."""
    path = ROOT / 'scripts' / f'{name}.py'
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def frame_factory():
    return make_frame


@pytest.fixture
def cohort_script():
    return load_script('generate_cohort_report')


@pytest.fixture
def subject_script():
    return load_script('generate_subject_report')


@pytest.fixture
def dispatcher_script():
    return load_script('generate_report')
