#!/usr/bin/env python
# coding: utf-8
"""
テーブル生成ライブラリ

集計結果のMarkdownテーブル化とCSV出力を提供。
"""

import logging
from datetime import date
from pathlib import Path

import numpy as np
import pandas as pd

from cohort.modalities import modality_label

logger = logging.getLogger(__name__)

# カラム設定: (表示名, フォーマット)
COLUMN_CONFIG = {
    'modality': ('Modality', ''),
    'subject_id': ('Subject', ''),
    'column': ('Column', ''),
    'description': ('Description', ''),
    'unit': ('Unit', ''),
    'value_column': ('Value', ''),
    # カバレッジ
    'n_subjects': ('Subjects', '.0f'),
    'n_records': ('Records', ',.0f'),
    'total_records': ('Records', ',.0f'),
    'n_days': ('Days', '.0f'),
    'total_days': ('Days', ',.0f'),
    'min_days': ('Min Days', '.0f'),
    'median_days': ('Median Days', '.1f'),
    'mean_days': ('Mean Days', '.1f'),
    'max_days': ('Max Days', '.0f'),
    'first_date': ('First', ''),
    'last_date': ('Last', ''),
    'span_days': ('Span', '.0f'),
    'coverage_pct': ('Coverage %', '.1f'),
    'mean_coverage_pct': ('Coverage %', '.1f'),
    'records_per_day': ('Records/Day', '.1f'),
    'n_gaps': ('Gaps', '.0f'),
    'missing_days': ('Missing Days', '.0f'),
    'longest_gap_days': ('Longest Gap', '.0f'),
    # 欠損
    'n_values': ('Values', ',.0f'),
    'n_missing': ('Missing', ',.0f'),
    'missing_pct': ('Missing %', '.1f'),
    'n_subjects_all_missing': ('All-missing Subjects', '.0f'),
    'n_rows': ('Rows', ',.0f'),
    'n_columns': ('Columns', '.0f'),
    'n_empty_columns': ('Empty Columns', '.0f'),
    'mean_missing_pct': ('Mean Missing %', '.1f'),
    'median_missing_pct': ('Median Missing %', '.1f'),
    'max_missing_pct': ('Max Missing %', '.1f'),
    'cell_missing_pct': ('Cell Missing %', '.1f'),
    # フィルタ
    'subjects_before': ('Before', '.0f'),
    'subjects_after': ('After', '.0f'),
    'dropped': ('Dropped', '.0f'),
    'retained_pct': ('Retained %', '.1f'),
    'eligible': ('Eligible', ''),
    # 重複
    'n_modalities': ('Modalities', '.0f'),
    # 品質
    'out_of_range': ('Out of Range', '.0f'),
    'out_of_range_pct': ('Out of Range %', '.2f'),
    'mean': ('Mean', '.1f'),
    'sd': ('SD', '.1f'),
    'min': ('Min', '.1f'),
    'max': ('Max', '.1f'),
    'n_readings': ('Readings', ',.0f'),
    'wear_pct': ('Wear %', '.1f'),
    'cv': ('CV %', '.1f'),
    'gmi': ('GMI %', '.2f'),
    'very_low_pct': ('<54 %', '.1f'),
    'low_pct': ('54-69 %', '.1f'),
    'tir_pct': ('TIR %', '.1f'),
    'high_pct': ('181-250 %', '.1f'),
    'very_high_pct': ('>250 %', '.1f'),
}

# カバレッジサマリー表の列
COVERAGE_SUMMARY_TABLE = [
    'modality', 'n_subjects', 'total_records', 'min_days', 'median_days',
    'mean_days', 'max_days', 'mean_coverage_pct', 'first_date', 'last_date',
]

# 被験者別カバレッジ表の列
SUBJECT_COVERAGE_TABLE = [
    'subject_id', 'n_records', 'n_days', 'first_date', 'last_date',
    'span_days', 'coverage_pct', 'n_gaps', 'longest_gap_days',
]

MISSING_SUMMARY_TABLE = [
    'modality', 'n_subjects', 'mean_missing_pct', 'median_missing_pct',
    'max_missing_pct', 'cell_missing_pct',
]

COLUMN_MISSING_TABLE = [
    'column', 'description', 'unit', 'n_subjects', 'missing_pct', 'n_subjects_all_missing',
]

FILTER_SUMMARY_TABLE = ['modality', 'subjects_before', 'subjects_after', 'dropped', 'retained_pct']

RANGE_QUALITY_TABLE = ['modality', 'n_subjects', 'n_values', 'out_of_range', 'out_of_range_pct']

CGM_QUALITY_TABLE = [
    'subject_id', 'n_days', 'wear_pct', 'mean', 'sd', 'cv', 'gmi',
    'very_low_pct', 'low_pct', 'tir_pct', 'high_pct', 'very_high_pct',
]


def format_cell(value, fmt='', date_format='%Y-%m-%d'):
    """
    セル値をフォーマット

    Examples
    --------
    >>> format_cell(12.345, '.1f')
    '12.3'
    >>> format_cell(float('nan'), '.1f')
    '-'
    >>> format_cell(pd.Timestamp('2024-03-01'))
    '2024-03-01'
    """
    # NaN・NaT・Noneは「-」で表示
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        return '-'
    if isinstance(value, (bool, np.bool_)):
        return 'Yes' if value else 'No'
    if isinstance(value, date):
        return value.strftime(date_format)
    if fmt and isinstance(value, (int, float, np.integer, np.floating)):
        return f"{float(value):{fmt}}"
    return str(value).replace('|', '\\|')


def format_markdown_table(df, columns=None, custom_labels=None, index_label=None,
                          date_format='%Y-%m-%d', modality_labels=True):
    """
    DataFrameをMarkdownテーブル形式でフォーマット

    Parameters
    ----------
    df : DataFrame
        表示するデータ
    columns : list, optional
        表示するカラムのリスト（Noneの場合は全カラム）
        存在しないカラムは無視する
    custom_labels : dict, optional
        カラム名の表示ラベルを上書きする辞書 {column: label}
    index_label : str, optional
        指定した場合、インデックスを先頭列として表示
    date_format : str
        日付のフォーマット
    modality_labels : bool
        modality列をモダリティ表示名に置き換えるか

    Returns
    -------
    str
        Markdownテーブル文字列（データがない場合は空文字）
    """
    if df is None or df.empty:
        return ''
    if columns is None:
        columns = list(df.columns)
    if custom_labels is None:
        custom_labels = {}

    # 有効なカラムのみ
    valid_columns = [c for c in columns if c in df.columns]

    # ヘッダー生成（カスタムラベルがあれば上書き）
    headers = []
    if index_label is not None:
        headers.append(index_label)
    for col in valid_columns:
        default = COLUMN_CONFIG[col][0] if col in COLUMN_CONFIG else modality_label(col)
        headers.append(custom_labels.get(col, default))

    header_row = '| ' + ' | '.join(headers) + ' |'
    separator_row = '|' + '|'.join(['------'] * len(headers)) + '|'

    # データ行生成
    data_rows = []
    for idx, row in df.iterrows():
        values = []
        if index_label is not None:
            values.append(format_cell(idx, date_format=date_format))
        for col in valid_columns:
            val = row[col]
            if col == 'modality' and modality_labels and isinstance(val, str):
                values.append(modality_label(val))
                continue
            fmt = COLUMN_CONFIG[col][1] if col in COLUMN_CONFIG else ''
            values.append(format_cell(val, fmt, date_format))
        data_rows.append('| ' + ' | '.join(values) + ' |')

    return '\n'.join([header_row, separator_row] + data_rows)


def summarize_range_quality(range_quality_df):
    """範囲チェック結果をモダリティ単位に集約"""
    if range_quality_df.empty:
        return pd.DataFrame(columns=RANGE_QUALITY_TABLE)

    grouped = range_quality_df.groupby('modality', sort=False).agg(
        n_subjects=('subject_id', 'nunique'),
        n_values=('n_values', 'sum'),
        out_of_range=('out_of_range', 'sum'),
    ).reset_index()
    grouped['out_of_range_pct'] = grouped['out_of_range'] / grouped['n_values'].where(grouped['n_values'] > 0) * 100
    return grouped[RANGE_QUALITY_TABLE]


def export_tables(tables, output_dir):
    """
    集計テーブルをCSVとして保存

    Parameters
    ----------
    tables : dict
        ファイル名（拡張子なし） -> DataFrame
    output_dir : Path
        出力ディレクトリ

    Returns
    -------
    list of Path
        保存したファイル
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for name, df in tables.items():
        if df is None:
            continue
        path = output_dir / f"{name}.csv"
        # インデックスに意味がある表（マトリクス等）はインデックスも出力
        keep_index = not isinstance(df.index, pd.RangeIndex)
        df.to_csv(path, index=keep_index, date_format='%Y-%m-%d')
        paths.append(path)
        logger.debug(f"Saved {path}")
    return paths
