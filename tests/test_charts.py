import matplotlib.pyplot as plt
import pytest

from cohort.analytics import charts, coverage, missingness, overlap


@pytest.fixture
def coverage_df(small_dataset):
    return coverage.calc_dataset_coverage(small_dataset)


def test_plots_are_saved(small_dataset, coverage_df, tmp_path):
    _, subject_missing = missingness.calc_dataset_missing(small_dataset)
    sets = overlap.participant_sets(small_dataset)

    paths = {
        'days': tmp_path / 'days.png',
        'heatmap': tmp_path / 'heatmap.png',
        'missing': tmp_path / 'missing.png',
        'overlap': tmp_path / 'overlap.png',
        'timeline': tmp_path / 'timeline.png',
        'daily': tmp_path / 'daily.png',
    }
    charts.plot_days_distribution(coverage_df, 10, save_path=paths['days'])
    charts.plot_days_heatmap(coverage.calc_days_matrix(coverage_df), save_path=paths['heatmap'])
    charts.plot_missing_bars(missingness.summarize_modality_missing(subject_missing),
                             save_path=paths['missing'])
    charts.plot_overlap_heatmap(overlap.calc_overlap_matrix(sets), save_path=paths['overlap'])
    charts.plot_subject_timelines(coverage_df, 'cgm', save_path=paths['timeline'])
    charts.plot_daily_record_counts(coverage.calc_daily_record_counts(small_dataset, '1001'),
                                    '1001', save_path=paths['daily'])

    for path in paths.values():
        assert path.exists() and path.stat().st_size > 0


def test_plot_returns_open_figure_without_path(coverage_df):
    fig = charts.plot_days_distribution(coverage_df)
    # 3 modalities -> one row of 3 axes
    assert len(fig.axes) == 3
    plt.close(fig)
