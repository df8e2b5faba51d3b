#!/usr/bin/env python
# coding: utf-8
"""
コホートカバレッジレポート生成スクリプト

被験者別・モダリティ別のデータ量（記録日数・期間・欠測）、欠損値、
参加者の重複を集計し、最低記録日数フィルタを適用してレポートを出力する。

Usage:
    python generate_cohort_report.py
    python generate_cohort_report.py --min-days 14 --modalities cgm,heart_rate,sleep
    python generate_cohort_report.py --start 2024-01-01 --end 2024-06-30 --require-all
"""

import sys
import logging
import argparse
from pathlib import Path
from datetime import datetime

import pandas as pd

project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / 'src'))

from cohort.analytics import charts, coverage, filtering, missingness, overlap, quality, tables
from cohort.modalities import modality_label
from cohort.templates import CohortReportRenderer
from cohort.utils.data_loader import clip_to_period, load_column_metadata, load_dataset
from cohort.utils.report_args import (
    add_common_report_args, determine_output_dir, format_period,
    parse_modalities_arg, parse_period_args,
)

BASE_DIR = project_root
DATA_DIR = BASE_DIR / 'data'
DEFAULT_OUTPUT = BASE_DIR / 'tmp/cohort_report'
METADATA_FILENAME = 'column_metadata.csv'


def load_data(data_dir, modalities, start=None, end=None):
    """
    全モダリティを読み込み、期間指定があれば絞り込む

    Returns
    -------
    dict
        モダリティ -> {被験者ID -> DataFrame}
    """
    dataset = load_dataset(data_dir, modalities)
    if start is not None or end is not None:
        dataset = {m: clip_to_period(frames, m, start, end) for m, frames in dataset.items()}
    return dataset


def summarize(dataset, modalities, min_days, require_all=False):
    """
    カバレッジ計算 → フィルタ → 欠損・重複・品質の集計

    カバレッジとフィルタ結果は全被験者、欠損・重複・品質はフィルタ後の被験者が対象。

    Returns
    -------
    dict
        集計結果のDataFrame群
    """
    loaded = [m for m in modalities if dataset.get(m)]

    coverage_df = coverage.calc_dataset_coverage(dataset)
    coverage_summary = coverage.summarize_modality_coverage(coverage_df, modalities)
    days_matrix = coverage.calc_days_matrix(coverage_df)

    eligible = filtering.eligible_subjects(coverage_df, min_days, loaded, require_all)
    filter_summary = filtering.summarize_filter(coverage_df, eligible)
    filtered = filtering.apply_subject_filter(dataset, eligible)

    column_missing, subject_missing = missingness.calc_dataset_missing(filtered)
    missing_summary = missingness.summarize_modality_missing(subject_missing, loaded)

    all_sets = overlap.participant_sets({m: dataset[m] for m in loaded})
    sets = overlap.participant_sets({m: filtered[m] for m in loaded})
    overlap_matrix = overlap.calc_overlap_matrix(sets)
    presence = overlap.calc_presence_table(sets)
    modality_count = overlap.calc_modality_count_distribution(presence)

    range_parts = [quality.calc_value_range_quality(filtered[m], m) for m in loaded]
    range_parts = [p for p in range_parts if not p.empty]
    range_quality = (pd.concat(range_parts, ignore_index=True)
                     if range_parts else pd.DataFrame(columns=quality.RANGE_QUALITY_COLUMNS))
    cgm_quality = quality.calc_cgm_quality(filtered.get('cgm', {}))

    eligible_union = set().union(*eligible.values()) if eligible else set()
    overview = {
        'n_subjects_total': len(set().union(*all_sets.values())) if all_sets else 0,
        'n_subjects_all': len(overlap.subjects_in_all(all_sets, loaded)),
        'n_subjects_eligible': len(eligible_union),
        'n_modalities_loaded': len(loaded),
    }

    return {
        'loaded': loaded,
        'overview': overview,
        'coverage': coverage_df,
        'coverage_summary': coverage_summary,
        'days_matrix': days_matrix,
        'eligible': eligible,
        'filter_summary': filter_summary,
        'column_missing': column_missing,
        'subject_missing': subject_missing,
        'missing_summary': missing_summary,
        'overlap': overlap_matrix,
        'presence': presence,
        'modality_count': modality_count,
        'range_quality': range_quality,
        'cgm_quality': cgm_quality,
    }


def generate_charts(results, img_dir, min_days):
    """
    グラフを生成

    Returns
    -------
    dict
        レポートからの相対パス
    """
    chart_paths = {'timelines': {}}
    coverage_df = results['coverage']
    if coverage_df.empty:
        return chart_paths

    charts.plot_days_distribution(coverage_df, min_days, save_path=img_dir / 'days_distribution.png')
    chart_paths['days_distribution'] = 'img/days_distribution.png'

    if not results['days_matrix'].empty:
        charts.plot_days_heatmap(results['days_matrix'], save_path=img_dir / 'days_heatmap.png')
        chart_paths['days_heatmap'] = 'img/days_heatmap.png'

    if results['missing_summary']['mean_missing_pct'].notna().any():
        charts.plot_missing_bars(results['missing_summary'], save_path=img_dir / 'missing.png')
        chart_paths['missing'] = 'img/missing.png'

    if not results['overlap'].empty:
        charts.plot_overlap_heatmap(results['overlap'], save_path=img_dir / 'overlap.png')
        chart_paths['overlap'] = 'img/overlap.png'

    for modality in results['loaded']:
        sub = coverage_df[coverage_df['modality'] == modality]
        if sub['first_date'].notna().any():
            filename = f'timeline_{modality}.png'
            charts.plot_subject_timelines(coverage_df, modality, save_path=img_dir / filename)
            chart_paths['timelines'][modality] = f'img/{filename}'

    return chart_paths


def prepare_report_tables(results, metadata):
    """Markdownテーブルを準備"""
    overlap_table = results['overlap'].rename(index=modality_label)
    column_missing = missingness.attach_column_metadata(results['column_missing'], metadata)
    coverage_df = results['coverage']

    subject_coverage = {}
    column_missing_tables = {}
    for modality in results['loaded']:
        subject_coverage[modality] = tables.format_markdown_table(
            coverage_df[coverage_df['modality'] == modality], tables.SUBJECT_COVERAGE_TABLE
        )
        column_missing_tables[modality] = tables.format_markdown_table(
            column_missing[column_missing['modality'] == modality], tables.COLUMN_MISSING_TABLE
        )

    return {
        'coverage_summary': tables.format_markdown_table(
            results['coverage_summary'], tables.COVERAGE_SUMMARY_TABLE
        ),
        'filter_summary': tables.format_markdown_table(
            results['filter_summary'], tables.FILTER_SUMMARY_TABLE
        ),
        'missing_summary': tables.format_markdown_table(
            results['missing_summary'], tables.MISSING_SUMMARY_TABLE
        ),
        'overlap': tables.format_markdown_table(overlap_table, index_label='Modality'),
        'modality_count': tables.format_markdown_table(results['modality_count']),
        'range_quality': tables.format_markdown_table(
            tables.summarize_range_quality(results['range_quality']), tables.RANGE_QUALITY_TABLE
        ),
        'cgm_quality': tables.format_markdown_table(
            results['cgm_quality'], tables.CGM_QUALITY_TABLE
        ),
        'subject_coverage': subject_coverage,
        'column_missing': column_missing_tables,
    }


def prepare_cohort_report_data(results, report_tables, chart_paths, args, modalities, period):
    """
    コホートレポート用のコンテキストデータを準備

    Returns
    -------
    dict
        テンプレートコンテキスト
    """
    summary = results['coverage_summary'].set_index('modality')
    modality_rows = [
        {'key': m, 'n_subjects': int(summary.loc[m, 'n_subjects']) if m in summary.index else 0}
        for m in modalities
    ]

    return {
        'report_title': 'コホート データカバレッジレポート',
        'generated_at': datetime.now().strftime('%Y-%m-%d %H:%M'),
        'data_dir': str(args.data_dir),
        'period': period,
        'min_days': args.min_days,
        'require_all': args.require_all,
        'modalities': modality_rows,
        'overview': results['overview'],
        'tables': report_tables,
        'charts': chart_paths,
        'cgm_summary': quality.summarize_cgm_quality(results['cgm_quality']),
    }


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Cohort Coverage Report',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                        # 全モダリティ（最低10日）
  %(prog)s --min-days 14                          # 最低14日
  %(prog)s --modalities cgm,heart_rate            # CGMと心拍数のみ
  %(prog)s --min-days 7 --require-all             # 全モダリティで7日以上の被験者のみ
  %(prog)s --start 2024-01-01 --end 2024-03-31    # 期間指定
        """
    )
    add_common_report_args(parser, DATA_DIR, DEFAULT_OUTPUT)
    parser.add_argument('--require-all', action='store_true',
                        help='全モダリティで最低記録日数を満たす被験者のみを対象にする')
    parser.add_argument('--no-charts', action='store_true', help='グラフを生成しない')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    try:
        modalities = parse_modalities_arg(args.modalities)
        start, end = parse_period_args(args)
        if args.min_days < 0:
            raise ValueError(f"--min-days は0以上を指定してください: {args.min_days}")
    except ValueError as e:
        print(f"エラー: {e}")
        return 1

    # Load data
    print("データを読み込み中...")
    dataset = load_data(args.data_dir, modalities, start, end)
    for m in modalities:
        print(f"  {modality_label(m)}: {len(dataset[m])}名")

    if not any(dataset.values()):
        print("No data")
        return 1

    metadata = load_column_metadata(args.metadata or args.data_dir / METADATA_FILENAME)

    # Summarize & filter
    results = summarize(dataset, modalities, args.min_days, args.require_all)
    print(f"被験者数: {results['overview']['n_subjects_total']}名 "
          f"(最低{args.min_days}日通過: {results['overview']['n_subjects_eligible']}名)")

    # Output directory
    output_dir = determine_output_dir(args.output, start, end)
    img_dir = output_dir / 'img'
    img_dir.mkdir(parents=True, exist_ok=True)

    # Tables
    column_missing = missingness.attach_column_metadata(results['column_missing'], metadata)
    tables.export_tables({
        'coverage': results['coverage'],
        'coverage_summary': results['coverage_summary'],
        'days_matrix': results['days_matrix'],
        'filter_summary': results['filter_summary'],
        'column_missing': column_missing,
        'subject_missing': results['subject_missing'],
        'missing_summary': results['missing_summary'],
        'overlap': results['overlap'],
        'presence': results['presence'],
        'range_quality': results['range_quality'],
        'cgm_quality': results['cgm_quality'],
    }, output_dir / 'tables')

    # Charts
    chart_paths = {'timelines': {}}
    if not args.no_charts:
        chart_paths = generate_charts(results, img_dir, args.min_days)

    # Report
    report_tables = prepare_report_tables(results, metadata)
    context = prepare_cohort_report_data(
        results, report_tables, chart_paths, args, modalities, format_period(start, end)
    )
    renderer = CohortReportRenderer()
    report = renderer.render_cohort_report(context)

    report_path = output_dir / 'report.md'
    with open(report_path, 'w', encoding='utf-8') as f:
        f.write(report)

    print(f'Report: {report_path}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
