#!/usr/bin/env python
# coding: utf-8
"""
データカバレッジ分析ライブラリ

被験者×モダリティごとの記録日数、期間、欠測日（ギャップ）、カバー率を計算する。
"""

import numpy as np
import pandas as pd

from cohort.modalities import get_modality
from cohort.utils.data_loader import detect_time_column


# 被験者別カバレッジの列
COVERAGE_COLUMNS = [
    'modality', 'subject_id', 'n_records', 'n_days',
    'first_date', 'last_date', 'span_days', 'coverage_pct',
    'records_per_day', 'n_gaps', 'missing_days', 'longest_gap_days',
]

# モダリティ別サマリーの列
SUMMARY_COLUMNS = [
    'modality', 'n_subjects', 'total_records', 'total_days',
    'min_days', 'median_days', 'mean_days', 'max_days',
    'mean_coverage_pct', 'first_date', 'last_date',
]


def _unique_days(values):
    """日時の配列を重複なし・昇順の日付（00:00正規化）に変換"""
    ts = pd.to_datetime(pd.Series(values)).dropna()
    if ts.empty:
        return pd.DatetimeIndex([])
    return pd.DatetimeIndex(ts.dt.normalize().unique()).sort_values()


def calc_date_gaps(dates):
    """
    記録日の間の欠測日（ギャップ）を計算

    最初の記録日〜最後の記録日の範囲内で、連続して記録がない日を
    1つのギャップとして数える。

    Parameters
    ----------
    dates : array-like
        記録のある日付（重複・時刻付きでも可）

    Returns
    -------
    dict
        n_gaps: ギャップ数
        missing_days: 範囲内の欠測日数の合計
        longest_gap_days: 最長ギャップの日数

    Examples
    --------
    >>> calc_date_gaps(['2024-01-01', '2024-01-02', '2024-01-05'])
    {'n_gaps': 1, 'missing_days': 2, 'longest_gap_days': 2}
    """
    days = _unique_days(dates)
    if len(days) < 2:
        return {'n_gaps': 0, 'missing_days': 0, 'longest_gap_days': 0}

    step = pd.Series(days).diff().dt.days.dropna()
    gaps = step[step > 1] - 1

    return {
        'n_gaps': int(len(gaps)),
        'missing_days': int(gaps.sum()),
        'longest_gap_days': int(gaps.max()) if len(gaps) else 0,
    }


def calc_subject_coverage(df, time_column):
    """
    被験者1名・1モダリティのカバレッジを計算

    Parameters
    ----------
    df : DataFrame
        被験者のデータ
    time_column : str or None
        タイムスタンプ列名

    Returns
    -------
    dict
        n_records, n_days, first_date, last_date, span_days,
        coverage_pct (n_days / span_days * 100), records_per_day (n_records / n_days),
        n_gaps, missing_days, longest_gap_days
        タイムスタンプがない場合は n_days=0、日付はNaT、率はNaN
    """
    n_records = len(df)

    if time_column is None or time_column not in df.columns:
        ts = pd.Series(dtype='datetime64[ns]')
    else:
        ts = df[time_column].dropna()

    if ts.empty:
        return {
            'n_records': n_records,
            'n_days': 0,
            'first_date': pd.NaT,
            'last_date': pd.NaT,
            'span_days': 0,
            'coverage_pct': np.nan,
            'records_per_day': np.nan,
            'n_gaps': 0,
            'missing_days': 0,
            'longest_gap_days': 0,
        }

    days = _unique_days(ts)
    first_date = days[0]
    last_date = days[-1]
    span_days = (last_date - first_date).days + 1
    n_days = len(days)

    stats = {
        'n_records': n_records,
        'n_days': n_days,
        'first_date': first_date,
        'last_date': last_date,
        'span_days': span_days,
        'coverage_pct': n_days / span_days * 100,
        'records_per_day': n_records / n_days,
    }
    stats.update(calc_date_gaps(days))
    return stats


def calc_modality_coverage(frames, modality):
    """
    1モダリティの全被験者のカバレッジ

    Parameters
    ----------
    frames : dict
        被験者ID -> DataFrame
    modality : str
        モダリティキー

    Returns
    -------
    DataFrame
        被験者ごとに1行（COVERAGE_COLUMNS、被験者ID順）
    """
    spec = get_modality(modality)

    rows = []
    for subject_id in sorted(frames):
        df = frames[subject_id]
        row = {'modality': modality, 'subject_id': subject_id}
        row.update(calc_subject_coverage(df, detect_time_column(df, spec)))
        rows.append(row)

    if not rows:
        return pd.DataFrame(columns=COVERAGE_COLUMNS)
    return pd.DataFrame(rows, columns=COVERAGE_COLUMNS)


def calc_dataset_coverage(dataset):
    """全モダリティのカバレッジを縦に結合"""
    parts = [calc_modality_coverage(frames, m) for m, frames in dataset.items() if frames]
    if not parts:
        return pd.DataFrame(columns=COVERAGE_COLUMNS)
    return pd.concat(parts, ignore_index=True)


def summarize_modality_coverage(coverage_df, modalities=None):
    """
    モダリティ別のカバレッジサマリー

    Parameters
    ----------
    coverage_df : DataFrame
        calc_dataset_coverage の結果
    modalities : list of str, optional
        出力するモダリティ（データのないモダリティも0行として含める）

    Returns
    -------
    DataFrame
        SUMMARY_COLUMNS（モダリティごとに1行）
    """
    rows = []
    order = modalities if modalities is not None else list(dict.fromkeys(coverage_df['modality']))

    for modality in order:
        sub = coverage_df[coverage_df['modality'] == modality]
        if sub.empty:
            rows.append({
                'modality': modality, 'n_subjects': 0, 'total_records': 0, 'total_days': 0,
                'min_days': 0, 'median_days': np.nan, 'mean_days': np.nan, 'max_days': 0,
                'mean_coverage_pct': np.nan, 'first_date': pd.NaT, 'last_date': pd.NaT,
            })
            continue

        n_days = sub['n_days'].astype(float)
        rows.append({
            'modality': modality,
            'n_subjects': int(sub['subject_id'].nunique()),
            'total_records': int(sub['n_records'].sum()),
            'total_days': int(sub['n_days'].sum()),
            'min_days': int(n_days.min()),
            'median_days': n_days.median(),
            'mean_days': n_days.mean(),
            'max_days': int(n_days.max()),
            'mean_coverage_pct': pd.to_numeric(sub['coverage_pct'], errors='coerce').mean(),
            'first_date': pd.to_datetime(sub['first_date']).min(),
            'last_date': pd.to_datetime(sub['last_date']).max(),
        })

    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def calc_days_matrix(coverage_df):
    """
    被験者×モダリティの記録日数マトリクス

    データのない組み合わせは0。
    """
    if coverage_df.empty:
        return pd.DataFrame()

    order = list(dict.fromkeys(coverage_df['modality']))
    matrix = coverage_df.pivot_table(
        index='subject_id', columns='modality', values='n_days',
        aggfunc='sum', fill_value=0
    )
    matrix = matrix.reindex(columns=order, fill_value=0).astype(int)
    matrix.columns.name = None
    return matrix


def calc_daily_record_counts(dataset, subject_id):
    """
    被験者1名の日別レコード数（日付×モダリティ）

    Parameters
    ----------
    dataset : dict
        モダリティ -> {被験者ID -> DataFrame}
    subject_id : str
        被験者ID

    Returns
    -------
    DataFrame
        index: date, columns: モダリティ（記録のない日は0）
    """
    series = []
    for modality, frames in dataset.items():
        df = frames.get(subject_id)
        if df is None:
            continue
        time_col = detect_time_column(df, get_modality(modality))
        if time_col is None:
            continue
        counts = df[time_col].dropna().dt.normalize().value_counts()
        series.append(counts.rename(modality))

    if not series:
        return pd.DataFrame()

    counts = pd.concat(series, axis=1).fillna(0).astype(int).sort_index()
    counts.index.name = 'date'
    return counts
