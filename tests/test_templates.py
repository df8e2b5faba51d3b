import pytest
from jinja2 import TemplateNotFound

from cohort.templates import CohortReportRenderer
from cohort.templates.filters import format_change, number_format, percent_format


def test_format_change():
    assert format_change(2.5, '%') == '**+2.50%**'
    assert format_change(-3) == '-3.00'
    assert format_change(-3, '%', positive_is_good=False) == '**-3.00%**'
    assert format_change(0, '名') == '±0名'
    assert format_change(-1, '名', decimals=0) == '-1名'
    assert format_change(3, '名', decimals=0) == '**+3名**'
    assert format_change(float('nan')) == '-'


def test_number_and_percent_format():
    assert number_format(12345.678, 1) == '12,345.7'
    assert number_format(None) == '-'
    assert percent_format(87.456) == '87.5%'
    assert percent_format(5.9412, 2) == '5.94%'
    assert percent_format(float('nan')) == '-'


def _cohort_context(**overrides):
    context = {
        'report_title': 'コホート データカバレッジレポート',
        'generated_at': '2024-03-01 09:00',
        'data_dir': '/data',
        'period': None,
        'min_days': 10,
        'require_all': False,
        'modalities': [{'key': 'cgm', 'n_subjects': 2}, {'key': 'ecg', 'n_subjects': 0}],
        'overview': {
            'n_subjects_total': 3, 'n_subjects_all': 0,
            'n_subjects_eligible': 2, 'n_modalities_loaded': 1,
        },
        'tables': {
            'coverage_summary': '| Modality |\n|------|\n| CGM |',
            'filter_summary': '',
            'missing_summary': '',
            'overlap': '',
            'modality_count': '',
            'range_quality': '',
            'cgm_quality': '',
            'subject_coverage': {'cgm': '| Subject |\n|------|\n| 1001 |'},
            'column_missing': {},
        },
        'charts': {'timelines': {}},
        'cgm_summary': {},
    }
    context.update(overrides)
    return context


def test_render_cohort_report():
    report = CohortReportRenderer().render_cohort_report(_cohort_context())

    assert report.startswith('# コホート データカバレッジレポート')
    assert '**ECG**: 0名（データなし）' in report
    assert '### CGM' in report
    assert '| 1001 |' in report
    assert '| 2 (-1名) |' in report
    assert '## データ品質' not in report
    assert '期間' not in report


def test_render_cohort_report_with_period_and_cgm_summary():
    context = _cohort_context(
        period='2024-01-01 〜 2024-01-31',
        require_all=True,
        cgm_summary={'n_subjects': 2, 'wear_pct': 80.0, 'mean': 120.0,
                     'cv': 25.0, 'gmi': 6.18, 'tir_pct': 75.5},
        charts={'timelines': {'cgm': 'img/timeline_cgm.png'}},
    )
    report = CohortReportRenderer().render_cohort_report(context)

    assert '**期間**: 2024-01-01 〜 2024-01-31' in report
    assert '（全モダリティで必須）' in report
    assert '| TIR (70-180) | 75.5% |' in report
    assert '| GMI | 6.18% |' in report
    assert '![CGM Timeline](img/timeline_cgm.png)' in report


def test_render_subject_report():
    context = {
        'report_title': '被験者データカバレッジレポート: 1001',
        'generated_at': '2024-03-01 09:00',
        'subject_id': '1001',
        'period': None,
        'min_days': 10,
        'eligible': False,
        'missing_modalities': ['ecg', 'oxygen_saturation'],
        'tables': {'coverage': '', 'missing': '', 'range_quality': '',
                   'cgm_quality': '', 'daily_counts': ''},
        'charts': {},
    }
    report = CohortReportRenderer().render_subject_report(context)

    assert '**被験者**: 1001' in report
    assert 'この被験者のデータはありません' in report
    assert 'データなし: ECG, SpO2' in report
    assert '未達' in report


def test_renderer_missing_template(tmp_path):
    renderer = CohortReportRenderer(template_dir=tmp_path)
    with pytest.raises(TemplateNotFound):
        renderer.render_cohort_report(_cohort_context())
