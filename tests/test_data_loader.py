import numpy as np
import pandas as pd
import pytest

from cohort.modalities import get_modality
from cohort.utils.data_loader import (
    clip_to_period,
    detect_time_column,
    extract_subject_id,
    load_column_metadata,
    load_dataset,
    load_modality,
    parse_datetime_columns,
)


def test_extract_subject_id_from_column():
    df = pd.DataFrame({'person_id': [np.nan, 1001.0], 'x': [1, 2]})
    assert extract_subject_id(df) == '1001'


def test_extract_subject_id_prefers_participant_id():
    df = pd.DataFrame({'participant_id': ['A-7'], 'person_id': ['B-1']})
    assert extract_subject_id(df) == 'A-7'


def test_extract_subject_id_attrs_and_fallback():
    df = pd.DataFrame({'x': [1]})
    assert extract_subject_id(df, fallback=3) == '3'
    assert extract_subject_id(df) is None
    df.attrs['subject_id'] = 'S9'
    assert extract_subject_id(df, fallback=3) == 'S9'


def test_parse_datetime_columns_best_effort():
    df = pd.DataFrame({
        'timestamp': ['2024-01-01 08:00', '2024-01-02 09:30', None],
        'update_time': ['not a date', 'still not', 'nope'],
        'date_index': [1, 2, 3],
        'value': [1.0, 2.0, 3.0],
    })
    parsed_df, parsed = parse_datetime_columns(df)

    assert parsed == ['timestamp']
    assert pd.api.types.is_datetime64_any_dtype(parsed_df['timestamp'])
    assert parsed_df['timestamp'].isna().sum() == 1
    # unparsable and numeric columns are left untouched
    assert parsed_df['update_time'].tolist() == df['update_time'].tolist()
    assert parsed_df['date_index'].tolist() == [1, 2, 3]
    # input is not modified
    assert not pd.api.types.is_datetime64_any_dtype(df['timestamp'])


def test_parse_datetime_columns_converts_timezones_to_utc_naive():
    df = pd.DataFrame({'timestamp': ['2024-01-01T09:00:00+09:00', '2024-01-01T00:00:00Z']})
    parsed_df, parsed = parse_datetime_columns(df)

    assert parsed == ['timestamp']
    assert parsed_df['timestamp'].dt.tz is None
    assert (parsed_df['timestamp'] == pd.Timestamp('2024-01-01 00:00')).all()


def test_parse_datetime_columns_tz_aware_dtype():
    ts = pd.Series(pd.date_range('2024-01-01', periods=2, freq='h', tz='Asia/Tokyo'))
    parsed_df, parsed = parse_datetime_columns(pd.DataFrame({'time': ts}))
    assert parsed == ['time']
    assert parsed_df['time'].iloc[0] == pd.Timestamp('2023-12-31 15:00')


def test_detect_time_column_prefers_modality_candidates():
    df = pd.DataFrame({
        'created': pd.to_datetime(['2024-01-01']),
        'timestamp': pd.to_datetime(['2024-01-02']),
    })
    assert detect_time_column(df, get_modality('cgm')) == 'timestamp'
    assert detect_time_column(df) == 'created'
    assert detect_time_column(pd.DataFrame({'x': [1]})) is None


def test_load_modality_from_list(data_dir):
    frames = load_modality(data_dir / 'cgm.pkl', 'cgm')

    assert list(frames) == ['1001', '1002']
    assert pd.api.types.is_datetime64_any_dtype(frames['1001']['timestamp'])
    assert len(frames['1001']) == 14 * 6


def test_load_modality_from_dict_and_single_frame(data_dir):
    heart_rate = load_modality(data_dir / 'heart_rate.pkl', 'heart_rate')
    clinical = load_modality(data_dir / 'clinical.pkl', 'clinical')

    assert list(heart_rate) == ['1001', '1003']
    assert list(clinical) == ['1001', '1002', '1003']
    assert len(clinical['1002']) == 1
    assert pd.api.types.is_datetime64_any_dtype(clinical['1003']['visit_date'])


def test_load_modality_concatenates_duplicate_subjects(tmp_path, frame_factory):
    frames = [
        frame_factory('7', '2024-01-01', 2, value_col='stress_level', value=20),
        frame_factory('7', '2024-01-10', 1, value_col='stress_level', value=30),
        pd.DataFrame(),
    ]
    pd.to_pickle(frames, tmp_path / 'stress.pkl')

    loaded = load_modality(tmp_path / 'stress.pkl', 'stress')
    assert list(loaded) == ['7']
    assert len(loaded['7']) == 3 * 4


def test_load_modality_missing_file_returns_empty(tmp_path):
    assert load_modality(tmp_path / 'ecg.pkl', 'ecg') == {}


def test_load_modality_rejects_unknown_payload(tmp_path):
    pd.to_pickle('not frames', tmp_path / 'sleep.pkl')
    with pytest.raises(TypeError):
        load_modality(tmp_path / 'sleep.pkl', 'sleep')


def test_load_dataset_unknown_modality(tmp_path):
    with pytest.raises(ValueError):
        load_dataset(tmp_path, ['cgm', 'steps'])


def test_load_dataset_all_modalities(data_dir):
    dataset = load_dataset(data_dir)
    assert len(dataset) == 9
    assert dataset['ecg'] == {}
    assert set(dataset['clinical']) == {'1001', '1002', '1003'}


def test_load_column_metadata(data_dir, tmp_path):
    meta = load_column_metadata(data_dir / 'column_metadata.csv')
    assert list(meta.columns) == ['modality', 'column', 'description', 'unit']
    assert len(meta) == 3

    assert load_column_metadata(tmp_path / 'missing.csv').empty

    bad = tmp_path / 'bad.csv'
    pd.DataFrame({'name': ['glucose']}).to_csv(bad, index=False)
    with pytest.raises(ValueError):
        load_column_metadata(bad)


def test_clip_to_period_end_is_inclusive(small_dataset):
    clipped = clip_to_period(small_dataset['cgm'], 'cgm', start='2024-01-03', end='2024-01-05')

    # 1003 only has February data
    assert set(clipped) == {'1001', '1002'}
    days = clipped['1001']['timestamp'].dt.normalize().unique()
    assert len(days) == 3
    assert clipped['1001']['timestamp'].max() == pd.Timestamp('2024-01-05 20:00')


def test_clip_to_period_without_bounds_is_noop(small_dataset):
    assert clip_to_period(small_dataset['cgm'], 'cgm') is small_dataset['cgm']
