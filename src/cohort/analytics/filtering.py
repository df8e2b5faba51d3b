#!/usr/bin/env python
# coding: utf-8
"""
最低記録日数フィルタ

記録日数が閾値に満たない被験者を分析対象から除外する。
"""

import numpy as np
import pandas as pd

from cohort.modalities import MODALITIES

# 最低記録日数のデフォルト値
DEFAULT_MIN_DAYS = 10


def _is_daily(modality):
    spec = MODALITIES.get(modality)
    return spec is None or spec.daily


def _check_min_days(min_days):
    if min_days is None:
        raise ValueError("min_days を指定してください")
    if min_days < 0:
        raise ValueError(f"min_days は0以上を指定してください: {min_days}")


def filter_by_min_days(coverage_df, min_days=DEFAULT_MIN_DAYS):
    """
    記録日数が min_days 以上の行のみ残す

    Parameters
    ----------
    coverage_df : DataFrame
        calc_dataset_coverage の結果（n_days列必須）
    min_days : int
        最低記録日数（0で全件）

    Returns
    -------
    DataFrame
        フィルタ後のカバレッジ

    Raises
    ------
    ValueError
        min_days が負の場合
    """
    _check_min_days(min_days)
    if min_days == 0:
        return coverage_df.copy()
    return coverage_df[coverage_df['n_days'] >= min_days].reset_index(drop=True)


def eligible_subjects(coverage_df, min_days=DEFAULT_MIN_DAYS, modalities=None, require_all=False):
    """
    閾値を満たす被験者

    Parameters
    ----------
    coverage_df : DataFrame
        カバレッジ
    min_days : int
        最低記録日数
    modalities : list of str, optional
        対象モダリティ（Noneでカバレッジにある全モダリティ）
    require_all : bool
        True の場合、全対象モダリティで閾値を満たす被験者のみ

    Returns
    -------
    dict
        モダリティ -> set(被験者ID)
        require_all の場合は全モダリティに同じ集合が入る

    Notes
    -----
    日次でないモダリティ（ECG、臨床記録）は記録日数を問わず、
    データがあれば対象とする。
    """
    kept = filter_by_min_days(coverage_df, min_days)
    if modalities is None:
        modalities = list(dict.fromkeys(coverage_df['modality']))

    eligible = {}
    for m in modalities:
        source = kept if _is_daily(m) else coverage_df
        eligible[m] = set(source.loc[source['modality'] == m, 'subject_id'])

    if require_all and eligible:
        common = set.intersection(*eligible.values())
        eligible = {m: set(common) for m in modalities}

    return eligible


def apply_subject_filter(dataset, eligible):
    """データセットを対象被験者に絞り込む（eligibleにないモダリティは空）"""
    return {
        modality: {sid: df for sid, df in frames.items() if sid in eligible.get(modality, set())}
        for modality, frames in dataset.items()
    }


def summarize_filter(coverage_df, eligible):
    """
    フィルタ前後の被験者数

    Returns
    -------
    DataFrame
        modality, subjects_before, subjects_after, dropped, retained_pct
    """
    rows = []
    for modality, kept in eligible.items():
        before = coverage_df.loc[coverage_df['modality'] == modality, 'subject_id'].nunique()
        after = len(kept)
        rows.append({
            'modality': modality,
            'subjects_before': int(before),
            'subjects_after': after,
            'dropped': int(before) - after,
            'retained_pct': after / before * 100 if before else np.nan,
        })
    return pd.DataFrame(
        rows, columns=['modality', 'subjects_before', 'subjects_after', 'dropped', 'retained_pct']
    )
