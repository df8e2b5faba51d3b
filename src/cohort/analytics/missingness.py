#!/usr/bin/env python
# coding: utf-8
"""
欠損値分析ライブラリ

列別・被験者別の欠損率を計算する。被験者ID列は対象外。
"""

import numpy as np
import pandas as pd

from cohort.modalities import SUBJECT_ID_COLUMNS


COLUMN_MISSING_COLUMNS = [
    'modality', 'column', 'n_subjects', 'n_values', 'n_missing',
    'missing_pct', 'n_subjects_all_missing',
]

SUBJECT_MISSING_COLUMNS = [
    'modality', 'subject_id', 'n_rows', 'n_columns', 'n_cells',
    'n_missing', 'missing_pct', 'n_empty_columns',
]

MISSING_SUMMARY_COLUMNS = [
    'modality', 'n_subjects', 'mean_missing_pct', 'median_missing_pct',
    'max_missing_pct', 'cell_missing_pct',
]


def _value_columns(df):
    return [c for c in df.columns if c not in SUBJECT_ID_COLUMNS]


def _pct(numerator, denominator):
    return numerator / denominator * 100 if denominator else np.nan


def calc_column_missing(frames, modality):
    """
    列ごとの欠損率（全被験者合算）

    Parameters
    ----------
    frames : dict
        被験者ID -> DataFrame
    modality : str
        モダリティキー

    Returns
    -------
    DataFrame
        COLUMN_MISSING_COLUMNS（列の初出順）
        n_subjects_all_missing は列が全て欠損している被験者数
    """
    totals = {}
    for df in frames.values():
        cols = _value_columns(df)
        if not cols:
            continue
        missing = df[cols].isna().sum()
        for col in cols:
            entry = totals.setdefault(col, {
                'n_subjects': 0, 'n_values': 0, 'n_missing': 0, 'n_subjects_all_missing': 0
            })
            entry['n_subjects'] += 1
            entry['n_values'] += len(df)
            entry['n_missing'] += int(missing[col])
            if len(df) > 0 and missing[col] == len(df):
                entry['n_subjects_all_missing'] += 1

    rows = []
    for col, entry in totals.items():
        rows.append({
            'modality': modality,
            'column': col,
            'n_subjects': entry['n_subjects'],
            'n_values': entry['n_values'],
            'n_missing': entry['n_missing'],
            'missing_pct': _pct(entry['n_missing'], entry['n_values']),
            'n_subjects_all_missing': entry['n_subjects_all_missing'],
        })
    return pd.DataFrame(rows, columns=COLUMN_MISSING_COLUMNS)


def calc_subject_missing(frames, modality):
    """被験者ごとの欠損率（全セルに対する欠損セルの割合）"""
    rows = []
    for subject_id in sorted(frames):
        df = frames[subject_id]
        cols = _value_columns(df)
        n_rows = len(df)
        n_cells = n_rows * len(cols)
        isna = df[cols].isna()
        n_missing = int(isna.to_numpy().sum())
        n_empty = int((isna.all()).sum()) if n_rows > 0 else len(cols)

        rows.append({
            'modality': modality,
            'subject_id': subject_id,
            'n_rows': n_rows,
            'n_columns': len(cols),
            'n_cells': n_cells,
            'n_missing': n_missing,
            'missing_pct': _pct(n_missing, n_cells),
            'n_empty_columns': n_empty,
        })
    return pd.DataFrame(rows, columns=SUBJECT_MISSING_COLUMNS)


def calc_dataset_missing(dataset):
    """
    全モダリティの欠損率

    Returns
    -------
    tuple[DataFrame, DataFrame]
        (列別, 被験者別)
    """
    column_parts = []
    subject_parts = []
    for modality, frames in dataset.items():
        if not frames:
            continue
        column_parts.append(calc_column_missing(frames, modality))
        subject_parts.append(calc_subject_missing(frames, modality))

    column_df = (pd.concat(column_parts, ignore_index=True)
                 if column_parts else pd.DataFrame(columns=COLUMN_MISSING_COLUMNS))
    subject_df = (pd.concat(subject_parts, ignore_index=True)
                  if subject_parts else pd.DataFrame(columns=SUBJECT_MISSING_COLUMNS))
    return column_df, subject_df


def summarize_modality_missing(subject_missing_df, modalities=None):
    """
    モダリティ別の欠損サマリー

    被験者ごとの欠損率の平均・中央値・最大と、セル全体の欠損率。
    """
    order = (modalities if modalities is not None
             else list(dict.fromkeys(subject_missing_df['modality'])))

    rows = []
    for modality in order:
        sub = subject_missing_df[subject_missing_df['modality'] == modality]
        pct = pd.to_numeric(sub['missing_pct'], errors='coerce')
        rows.append({
            'modality': modality,
            'n_subjects': len(sub),
            'mean_missing_pct': pct.mean(),
            'median_missing_pct': pct.median(),
            'max_missing_pct': pct.max(),
            'cell_missing_pct': _pct(sub['n_missing'].sum(), sub['n_cells'].sum()),
        })
    return pd.DataFrame(rows, columns=MISSING_SUMMARY_COLUMNS)


def attach_column_metadata(column_missing_df, metadata):
    """列別欠損表に列メタデータ（description, unit）を付与"""
    if metadata is None or metadata.empty:
        df = column_missing_df.copy()
        df['description'] = ''
        df['unit'] = ''
        return df

    merged = column_missing_df.merge(
        metadata[['modality', 'column', 'description', 'unit']].drop_duplicates(['modality', 'column']),
        on=['modality', 'column'], how='left'
    )
    merged[['description', 'unit']] = merged[['description', 'unit']].fillna('')
    return merged
