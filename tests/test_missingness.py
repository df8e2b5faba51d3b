import numpy as np
import pandas as pd
import pytest

from cohort.analytics import missingness


def test_calc_column_missing(small_dataset):
    df = missingness.calc_column_missing(small_dataset['heart_rate'], 'heart_rate')

    # subject id column is not analysed
    assert df['column'].tolist() == ['timestamp', 'heart_rate']
    hr = df.set_index('column').loc['heart_rate']
    assert hr['n_subjects'] == 2
    assert hr['n_values'] == 48 + 12
    assert hr['n_missing'] == 1
    assert hr['missing_pct'] == pytest.approx(100 / 60)
    assert hr['n_subjects_all_missing'] == 0


def test_calc_column_missing_counts_all_missing_subjects():
    frames = {
        'a': pd.DataFrame({'age': [np.nan], 'hba1c': [6.0]}),
        'b': pd.DataFrame({'age': [np.nan, np.nan], 'hba1c': [np.nan, 7.0]}),
    }
    df = missingness.calc_column_missing(frames, 'clinical').set_index('column')

    assert df.loc['age', 'n_subjects_all_missing'] == 2
    assert df.loc['age', 'missing_pct'] == pytest.approx(100.0)
    assert df.loc['hba1c', 'n_missing'] == 1


def test_calc_subject_missing(small_dataset):
    df = missingness.calc_subject_missing(small_dataset['heart_rate'], 'heart_rate')

    assert df['subject_id'].tolist() == ['1001', '1002']
    row = df.set_index('subject_id').loc['1002']
    assert row['n_rows'] == 12
    assert row['n_columns'] == 2
    assert row['n_cells'] == 24
    assert row['n_missing'] == 1
    assert row['missing_pct'] == pytest.approx(100 / 24)
    assert row['n_empty_columns'] == 0
    assert df.set_index('subject_id').loc['1001', 'missing_pct'] == 0


def test_calc_dataset_missing(small_dataset):
    column_df, subject_df = missingness.calc_dataset_missing(dict(small_dataset, ecg={}))

    assert set(column_df['modality']) == {'cgm', 'heart_rate', 'sleep'}
    assert len(subject_df) == 6


def test_calc_dataset_missing_empty():
    column_df, subject_df = missingness.calc_dataset_missing({'cgm': {}})
    assert column_df.empty and subject_df.empty
    assert list(subject_df.columns) == missingness.SUBJECT_MISSING_COLUMNS


def test_summarize_modality_missing(small_dataset):
    _, subject_df = missingness.calc_dataset_missing(small_dataset)
    summary = missingness.summarize_modality_missing(subject_df).set_index('modality')

    hr = summary.loc['heart_rate']
    assert hr['n_subjects'] == 2
    assert hr['mean_missing_pct'] == pytest.approx(100 / 48)
    assert hr['max_missing_pct'] == pytest.approx(100 / 24)
    assert hr['cell_missing_pct'] == pytest.approx(100 / 120)
    assert summary.loc['cgm', 'mean_missing_pct'] == 0


def test_attach_column_metadata(small_dataset):
    column_df, _ = missingness.calc_dataset_missing(small_dataset)
    metadata = pd.DataFrame({
        'modality': ['heart_rate'],
        'column': ['heart_rate'],
        'description': ['Heart rate'],
        'unit': ['bpm'],
    })
    merged = missingness.attach_column_metadata(column_df, metadata)

    assert len(merged) == len(column_df)
    row = merged[(merged['modality'] == 'heart_rate') & (merged['column'] == 'heart_rate')].iloc[0]
    assert row['unit'] == 'bpm'
    assert (merged.loc[merged['modality'] == 'cgm', 'description'] == '').all()

    bare = missingness.attach_column_metadata(column_df, pd.DataFrame())
    assert (bare['unit'] == '').all()
