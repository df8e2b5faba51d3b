#!/usr/bin/env python
# coding: utf-8
"""
カバレッジ・欠損・重複の可視化

各関数は save_path を指定すると画像を保存してFigureを閉じる。
"""

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.dates as mdates
import numpy as np
import pandas as pd
import seaborn as sns

from cohort.modalities import modality_label


# モダリティの色設定
MODALITY_COLORS = {
    'cgm': '#E74C3C',
    'heart_rate': '#C0392B',
    'sleep': '#5DADE2',
    'stress': '#F39C12',
    'calories': '#27AE60',
    'respiratory_rate': '#16A085',
    'oxygen_saturation': '#3498DB',
    'ecg': '#9B59B6',
    'clinical': '#7F8C8D',
}


def _finish(fig, save_path):
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        print(f"保存しました: {save_path}")
    return fig


def plot_days_distribution(coverage_df, min_days=None, save_path=None):
    """
    モダリティ別の記録日数ヒストグラム

    Args:
        coverage_df: calc_dataset_coverage の結果
        min_days: 閾値（指定時は縦線を表示）
        save_path: 保存先パス
    """
    modalities = list(dict.fromkeys(coverage_df['modality']))
    n = max(len(modalities), 1)
    ncols = min(n, 3)
    nrows = int(np.ceil(n / ncols))

    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 3.5 * nrows), squeeze=False)

    for ax, modality in zip(axes.flat, modalities):
        days = coverage_df.loc[coverage_df['modality'] == modality, 'n_days'].astype(float)
        ax.hist(days, bins=min(20, max(int(days.nunique()), 1)),
                color=MODALITY_COLORS.get(modality, 'steelblue'), alpha=0.8)
        if min_days:
            ax.axvline(min_days, color='black', linestyle='--', linewidth=1,
                       label=f'min {min_days}d')
            ax.legend(fontsize=8)
        ax.set_title(f"{modality_label(modality)} (n={len(days)})")
        ax.set_xlabel('Days with data')
        ax.set_ylabel('Subjects')
        ax.grid(axis='y', alpha=0.3)

    # 余った軸は非表示
    for ax in list(axes.flat)[len(modalities):]:
        ax.set_visible(False)

    fig.suptitle('Days with Data per Subject', fontweight='bold')
    return _finish(fig, save_path)


def plot_days_heatmap(days_matrix, save_path=None):
    """被験者×モダリティの記録日数ヒートマップ"""
    matrix = days_matrix.rename(columns=modality_label)
    height = min(max(3, 0.25 * len(matrix) + 1.5), 40)

    fig, ax = plt.subplots(figsize=(1.2 * max(len(matrix.columns), 1) + 3, height))
    sns.heatmap(matrix, cmap='YlGnBu', ax=ax, cbar_kws={'label': 'Days'},
                annot=len(matrix) <= 30, fmt='d', linewidths=0.5)
    ax.set_xlabel('')
    ax.set_ylabel('Subject')
    ax.set_title('Days with Data (Subject x Modality)')
    return _finish(fig, save_path)


def plot_missing_bars(missing_summary, save_path=None):
    """モダリティ別の平均欠損率（被験者平均）"""
    df = missing_summary.dropna(subset=['mean_missing_pct'])
    labels = [modality_label(m) for m in df['modality']]
    colors = [MODALITY_COLORS.get(m, 'steelblue') for m in df['modality']]

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.bar(range(len(df)), df['mean_missing_pct'], color=colors, alpha=0.8)
    ax.set_xticks(range(len(df)))
    ax.set_xticklabels(labels, rotation=45, ha='right')
    ax.set_ylabel('Missing %')
    ax.set_ylim(0, 100)
    ax.set_title('Mean Missing Values per Subject')
    ax.grid(axis='y', alpha=0.3)
    return _finish(fig, save_path)


def plot_overlap_heatmap(overlap, save_path=None):
    """モダリティ間の共通被験者数ヒートマップ"""
    matrix = overlap.rename(index=modality_label, columns=modality_label)

    fig, ax = plt.subplots(figsize=(1.1 * len(matrix) + 3, 0.9 * len(matrix) + 2))
    sns.heatmap(matrix, annot=True, fmt='d', cmap='Blues', square=True, ax=ax,
                cbar_kws={'label': 'Subjects'})
    ax.set_title('Participant Overlap between Modalities')
    return _finish(fig, save_path)


def plot_subject_timelines(coverage_df, modality, save_path=None):
    """
    被験者ごとの記録期間（最初〜最後の記録日）

    Args:
        coverage_df: カバレッジ
        modality: 表示するモダリティ
        save_path: 保存先パス
    """
    df = coverage_df[(coverage_df['modality'] == modality) & coverage_df['first_date'].notna()]
    df = df.sort_values('first_date')

    fig, ax = plt.subplots(figsize=(12, min(max(3, 0.25 * len(df) + 1.5), 40)))
    color = MODALITY_COLORS.get(modality, 'steelblue')
    for i, (_, row) in enumerate(df.iterrows()):
        start = mdates.date2num(pd.Timestamp(row['first_date']))
        ax.barh(i, row['span_days'], left=start, color=color, alpha=0.8, height=0.6)

    ax.xaxis_date()
    ax.set_yticks(range(len(df)))
    ax.set_yticklabels(df['subject_id'], fontsize=8)
    ax.set_xlabel('Date')
    ax.set_title(f'{modality_label(modality)} Recording Periods')
    ax.grid(axis='x', alpha=0.3)
    fig.autofmt_xdate()
    return _finish(fig, save_path)


def plot_daily_record_counts(counts, subject_id=None, save_path=None):
    """被験者1名の日別レコード数（モダリティごとに1段）"""
    modalities = list(counts.columns)
    n = max(len(modalities), 1)

    fig, axes = plt.subplots(n, 1, figsize=(12, 2.2 * n), sharex=True, squeeze=False)
    axes = axes.flat

    for ax, modality in zip(axes, modalities):
        ax.bar(counts.index, counts[modality], width=0.9,
               color=MODALITY_COLORS.get(modality, 'steelblue'), alpha=0.8)
        ax.set_ylabel(modality_label(modality), fontsize=9)
        ax.grid(axis='y', alpha=0.3)

    title = 'Daily Records'
    if subject_id is not None:
        title += f' - {subject_id}'
    fig.suptitle(title, fontweight='bold')
    fig.autofmt_xdate()
    return _finish(fig, save_path)
