#!/usr/bin/env python
# coding: utf-8
"""
モダリティ間の参加者重複分析

どの被験者がどのモダリティのデータを持っているかを集計する。
"""

import pandas as pd


def participant_sets(dataset):
    """
    モダリティごとの被験者集合（レコードが1件以上ある被験者のみ）

    Args:
        dataset: モダリティ -> {被験者ID -> DataFrame}

    Returns:
        dict: モダリティ -> set(被験者ID)
    """
    return {
        modality: {sid for sid, df in frames.items() if df is not None and len(df) > 0}
        for modality, frames in dataset.items()
    }


def participant_sets_from_coverage(coverage_df, min_days=0):
    """カバレッジ表から被験者集合を作成（min_days以上の被験者のみ）"""
    sets = {}
    for modality, group in coverage_df.groupby('modality', sort=False):
        sets[modality] = set(group.loc[group['n_days'] >= min_days, 'subject_id'])
    return sets


def calc_overlap_matrix(sets):
    """
    共通被験者数のマトリクス

    対角成分は各モダリティの被験者数。
    """
    keys = list(sets)
    matrix = pd.DataFrame(0, index=keys, columns=keys, dtype=int)
    for a in keys:
        for b in keys:
            matrix.loc[a, b] = len(sets[a] & sets[b])
    return matrix


def calc_overlap_pct_matrix(sets):
    """
    行方向に正規化した重複率（%）

    行モダリティの被験者のうち、列モダリティにも存在する割合。
    被験者のいないモダリティの行はNaN。
    """
    counts = calc_overlap_matrix(sets).astype(float)
    for key in counts.index:
        n = len(sets[key])
        counts.loc[key] = counts.loc[key] / n * 100 if n else float('nan')
    return counts


def calc_presence_table(sets):
    """
    被験者×モダリティの有無テーブル

    Returns:
        DataFrame: index=subject_id、各モダリティのbool列 + n_modalities
    """
    keys = list(sets)
    subjects = sorted(set().union(*sets.values())) if sets else []

    presence = pd.DataFrame(
        {key: [sid in sets[key] for sid in subjects] for key in keys},
        index=pd.Index(subjects, name='subject_id'),
    )
    presence['n_modalities'] = presence[keys].sum(axis=1).astype(int) if keys else 0
    return presence


def calc_modality_count_distribution(presence):
    """保有モダリティ数ごとの被験者数"""
    if presence.empty:
        return pd.DataFrame(columns=['n_modalities', 'n_subjects'])

    dist = presence['n_modalities'].value_counts().sort_index()
    return pd.DataFrame({'n_modalities': dist.index.astype(int), 'n_subjects': dist.values})


def subjects_in_all(sets, modalities=None):
    """指定モダリティ（省略時は全て）にデータがある被験者"""
    keys = list(modalities) if modalities is not None else list(sets)
    if not keys:
        return set()
    common = set(sets.get(keys[0], set()))
    for key in keys[1:]:
        common &= sets.get(key, set())
    return common
