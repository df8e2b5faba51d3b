#!/usr/bin/env python
# coding: utf-8
"""
データ品質分析ライブラリ

代表値の妥当範囲チェックと、CGMの基本統計（TIR・GMI・装着率）を提供。
"""

import numpy as np
import pandas as pd

from cohort.modalities import get_modality
from cohort.utils.data_loader import detect_time_column


# CGMのサンプリング間隔（分）と1日あたりの想定読み取り数
CGM_INTERVAL_MINUTES = 5
CGM_READINGS_PER_DAY = 24 * 60 // CGM_INTERVAL_MINUTES  # 288

# CGMの血糖値範囲 (mg/dL)
GLUCOSE_VERY_LOW = 54
GLUCOSE_LOW = 70
GLUCOSE_HIGH = 180
GLUCOSE_VERY_HIGH = 250

RANGE_QUALITY_COLUMNS = [
    'modality', 'subject_id', 'value_column', 'n_values', 'out_of_range',
    'out_of_range_pct', 'mean', 'sd', 'min', 'max',
]

CGM_QUALITY_COLUMNS = [
    'subject_id', 'n_readings', 'n_days', 'wear_pct', 'mean', 'sd', 'cv', 'gmi',
    'very_low_pct', 'low_pct', 'tir_pct', 'high_pct', 'very_high_pct',
]


def detect_value_column(df, spec):
    """代表値列を特定（数値に変換できる値が1件以上ある候補列）"""
    for col in spec.value_columns:
        if col in df.columns and pd.to_numeric(df[col], errors='coerce').notna().any():
            return col
    return None


def calc_value_range_quality(frames, modality):
    """
    代表値の妥当範囲チェック

    Parameters
    ----------
    frames : dict
        被験者ID -> DataFrame
    modality : str
        モダリティキー

    Returns
    -------
    DataFrame
        被験者ごとの範囲外件数・割合と基本統計
        代表値列または妥当範囲のないモダリティは空
    """
    spec = get_modality(modality)
    if spec.valid_range is None or not spec.value_columns:
        return pd.DataFrame(columns=RANGE_QUALITY_COLUMNS)

    low, high = spec.valid_range
    rows = []
    for subject_id in sorted(frames):
        df = frames[subject_id]
        col = detect_value_column(df, spec)
        if col is None:
            continue

        values = pd.to_numeric(df[col], errors='coerce').dropna()
        out_of_range = int(((values < low) | (values > high)).sum())
        rows.append({
            'modality': modality,
            'subject_id': subject_id,
            'value_column': col,
            'n_values': len(values),
            'out_of_range': out_of_range,
            'out_of_range_pct': out_of_range / len(values) * 100 if len(values) else np.nan,
            'mean': values.mean(),
            'sd': values.std(),
            'min': values.min(),
            'max': values.max(),
        })

    return pd.DataFrame(rows, columns=RANGE_QUALITY_COLUMNS)


def calc_glucose_stats(glucose):
    """
    血糖値の基本統計

    Args:
        glucose: 血糖値のSeries (mg/dL)

    Returns:
        dict: mean, sd, cv, gmi と各範囲の割合（%）
    """
    g = pd.to_numeric(glucose, errors='coerce').dropna()
    if g.empty:
        return {
            'mean': np.nan, 'sd': np.nan, 'cv': np.nan, 'gmi': np.nan,
            'very_low_pct': np.nan, 'low_pct': np.nan, 'tir_pct': np.nan,
            'high_pct': np.nan, 'very_high_pct': np.nan,
        }

    mean_g = g.mean()
    sd_g = g.std()
    return {
        'mean': mean_g,
        'sd': sd_g,
        'cv': (sd_g / mean_g * 100) if mean_g > 0 else np.nan,
        # GMI（Glucose Management Indicator）
        'gmi': 3.31 + 0.02392 * mean_g,
        'very_low_pct': (g < GLUCOSE_VERY_LOW).mean() * 100,
        'low_pct': ((g >= GLUCOSE_VERY_LOW) & (g < GLUCOSE_LOW)).mean() * 100,
        'tir_pct': ((g >= GLUCOSE_LOW) & (g <= GLUCOSE_HIGH)).mean() * 100,
        'high_pct': ((g > GLUCOSE_HIGH) & (g <= GLUCOSE_VERY_HIGH)).mean() * 100,
        'very_high_pct': (g > GLUCOSE_VERY_HIGH).mean() * 100,
    }


def calc_cgm_quality(frames):
    """
    被験者ごとのCGM品質指標

    装着率 = 読み取り数 / (記録日数 × 288) × 100（上限100%）

    Parameters
    ----------
    frames : dict
        被験者ID -> CGMのDataFrame

    Returns
    -------
    DataFrame
        CGM_QUALITY_COLUMNS
    """
    spec = get_modality('cgm')
    rows = []
    for subject_id in sorted(frames):
        df = frames[subject_id]
        col = detect_value_column(df, spec)
        if col is None:
            continue

        time_col = detect_time_column(df, spec)
        if time_col is not None:
            valid = df[df[time_col].notna()]
            n_days = valid[time_col].dt.normalize().nunique()
        else:
            valid = df
            n_days = 0

        glucose = pd.to_numeric(valid[col], errors='coerce').dropna()
        n_readings = len(glucose)
        wear_pct = (min(n_readings / (n_days * CGM_READINGS_PER_DAY) * 100, 100.0)
                    if n_days else np.nan)

        row = {
            'subject_id': subject_id,
            'n_readings': n_readings,
            'n_days': int(n_days),
            'wear_pct': wear_pct,
        }
        row.update(calc_glucose_stats(glucose))
        rows.append(row)

    return pd.DataFrame(rows, columns=CGM_QUALITY_COLUMNS)


def summarize_cgm_quality(cgm_quality_df):
    """CGM品質指標の被験者平均"""
    if cgm_quality_df.empty:
        return {}
    numeric = cgm_quality_df.drop(columns=['subject_id']).apply(pd.to_numeric, errors='coerce')
    summary = numeric.mean().to_dict()
    summary['n_subjects'] = len(cgm_quality_df)
    return summary
