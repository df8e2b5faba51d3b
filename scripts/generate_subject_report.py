#!/usr/bin/env python
# coding: utf-8
"""
被験者別データカバレッジレポート生成スクリプト

Usage:
    python generate_subject_report.py --subject 1001
    python generate_subject_report.py --subject 1001 --modalities cgm,sleep --min-days 14
"""

import sys
import logging
import argparse
from pathlib import Path
from datetime import datetime

import pandas as pd

project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / 'src'))

from cohort.analytics import charts, coverage, filtering, missingness, quality, tables
from cohort.modalities import get_modality
from cohort.templates import CohortReportRenderer
from cohort.utils.data_loader import clip_to_period, detect_time_column, load_dataset
from cohort.utils.report_args import (
    add_common_report_args, determine_output_dir, format_period,
    parse_modalities_arg, parse_period_args,
)

BASE_DIR = project_root
DATA_DIR = BASE_DIR / 'data'
DEFAULT_OUTPUT = BASE_DIR / 'tmp/cohort_report'


def extract_subject(dataset, subject_id):
    """データセットから被験者1名分だけを取り出す"""
    return {
        m: ({subject_id: frames[subject_id]} if subject_id in frames else {})
        for m, frames in dataset.items()
    }


def calc_subject_coverage_table(subject_data, subject_id):
    """被験者1名のモダリティ別カバレッジ"""
    rows = []
    for modality, frames in subject_data.items():
        if subject_id not in frames:
            continue
        df = frames[subject_id]
        row = {'modality': modality}
        row.update(coverage.calc_subject_coverage(df, detect_time_column(df, get_modality(modality))))
        rows.append(row)
    return pd.DataFrame(rows, columns=['modality'] + coverage.COVERAGE_COLUMNS[2:])


def main(argv=None):
    parser = argparse.ArgumentParser(description='Subject Coverage Report')
    parser.add_argument('--subject', type=str, required=True, help='被験者ID')
    add_common_report_args(parser, DATA_DIR, DEFAULT_OUTPUT)
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

    subject_id = args.subject.strip()

    # Load data
    dataset = load_dataset(args.data_dir, modalities)
    if start is not None or end is not None:
        dataset = {m: clip_to_period(frames, m, start, end) for m, frames in dataset.items()}
    subject_data = extract_subject(dataset, subject_id)

    present = [m for m in modalities if subject_data[m]]
    if not present:
        print(f"被験者 {subject_id} のデータがありません")
        return 1
    print(f"被験者 {subject_id}: {len(present)}/{len(modalities)} モダリティ")

    # Summarize
    coverage_table = calc_subject_coverage_table(subject_data, subject_id)

    # コホートと同じ基準でモダリティごとに判定
    eligible_sets = filtering.eligible_subjects(
        coverage_table.assign(subject_id=subject_id), args.min_days, present
    )
    coverage_table['eligible'] = [
        subject_id in eligible_sets.get(m, set()) for m in coverage_table['modality']
    ]
    n_eligible = int(coverage_table['eligible'].sum())

    _, subject_missing = missingness.calc_dataset_missing(subject_data)

    range_parts = [quality.calc_value_range_quality(subject_data[m], m) for m in present]
    range_parts = [p for p in range_parts if not p.empty]
    range_quality = pd.concat(range_parts, ignore_index=True) if range_parts else pd.DataFrame()
    cgm_quality = quality.calc_cgm_quality(subject_data.get('cgm', {}))

    daily_counts = coverage.calc_daily_record_counts(subject_data, subject_id)

    # Output directory
    output_dir = determine_output_dir(args.output, start, end, subject_id=subject_id)
    img_dir = output_dir / 'img'
    img_dir.mkdir(parents=True, exist_ok=True)

    tables.export_tables({
        'coverage': coverage_table,
        'missing': subject_missing,
        'daily_counts': daily_counts,
    }, output_dir / 'tables')

    chart_paths = {}
    if not args.no_charts and not daily_counts.empty:
        charts.plot_daily_record_counts(daily_counts, subject_id, save_path=img_dir / 'daily_counts.png')
        chart_paths['daily_counts'] = 'img/daily_counts.png'

    context = {
        'report_title': f'被験者データカバレッジレポート: {subject_id}',
        'generated_at': datetime.now().strftime('%Y-%m-%d %H:%M'),
        'subject_id': subject_id,
        'period': format_period(start, end),
        'min_days': args.min_days,
        'eligible': n_eligible > 0,
        'n_eligible': n_eligible,
        'n_present': len(present),
        'missing_modalities': [m for m in modalities if m not in present],
        'tables': {
            'coverage': tables.format_markdown_table(
                coverage_table, ['modality'] + tables.SUBJECT_COVERAGE_TABLE[1:] + ['eligible']
            ),
            'missing': tables.format_markdown_table(
                subject_missing,
                ['modality', 'n_rows', 'n_columns', 'n_missing', 'missing_pct', 'n_empty_columns']
            ),
            'range_quality': tables.format_markdown_table(
                range_quality,
                ['modality', 'value_column', 'n_values', 'out_of_range', 'out_of_range_pct',
                 'mean', 'sd', 'min', 'max']
            ),
            'cgm_quality': tables.format_markdown_table(
                cgm_quality, [c for c in tables.CGM_QUALITY_TABLE if c != 'subject_id']
            ),
            'daily_counts': tables.format_markdown_table(daily_counts, index_label='Date'),
        },
        'charts': chart_paths,
    }

    renderer = CohortReportRenderer()
    report = renderer.render_subject_report(context)

    report_path = output_dir / 'report.md'
    with open(report_path, 'w', encoding='utf-8') as f:
        f.write(report)

    print(f'Report: {report_path}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
