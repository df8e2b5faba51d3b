"""
レポート生成スクリプト共通の引数処理ユーティリティ
"""
from pathlib import Path
from typing import Optional, Tuple
import pandas as pd

from cohort.analytics.filtering import DEFAULT_MIN_DAYS
from cohort.modalities import MODALITY_ORDER, get_modality


def add_common_report_args(parser, default_data_dir: Path, default_output: Path,
                           default_min_days: int = DEFAULT_MIN_DAYS):
    """
    レポート生成スクリプトの共通引数を追加

    Parameters
    ----------
    parser : ArgumentParser
        argparseパーサー
    default_data_dir : Path
        デフォルトのデータディレクトリ（<modality>.pkl の置き場所）
    default_output : Path
        デフォルト出力ディレクトリ
    default_min_days : int
        --min-daysのデフォルト値
    """
    parser.add_argument(
        '--data-dir',
        type=Path,
        default=default_data_dir,
        help='データディレクトリ（<modality>.pkl）'
    )
    parser.add_argument(
        '--output',
        type=Path,
        default=default_output,
        help='出力ディレクトリ'
    )
    parser.add_argument(
        '--metadata',
        type=Path,
        default=None,
        help='列メタデータCSV（デフォルト: <data-dir>/column_metadata.csv）'
    )
    parser.add_argument(
        '--modalities',
        type=str,
        default=None,
        help=f'対象モダリティ（カンマ区切り、デフォルト: 全て）: {",".join(MODALITY_ORDER)}'
    )
    parser.add_argument(
        '--min-days',
        type=int,
        default=default_min_days,
        help=f'最低記録日数（デフォルト: {default_min_days}）'
    )
    parser.add_argument(
        '--start',
        type=str,
        default=None,
        help='分析期間の開始日（YYYY-MM-DD）'
    )
    parser.add_argument(
        '--end',
        type=str,
        default=None,
        help='分析期間の終了日（YYYY-MM-DD、当日を含む）'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='デバッグログを表示'
    )


def parse_modalities_arg(value: Optional[str]) -> list[str]:
    """
    --modalities をモダリティキーのリストに変換

    Raises
    ------
    ValueError
        未定義のモダリティが含まれる場合
    """
    if value is None or value.strip() == '' or value.strip().lower() == 'all':
        return list(MODALITY_ORDER)

    keys = [v.strip() for v in value.split(',') if v.strip()]
    for key in keys:
        get_modality(key)
    # 重複除去（指定順を維持）
    return list(dict.fromkeys(keys))


def parse_period_args(args) -> Tuple[Optional[pd.Timestamp], Optional[pd.Timestamp]]:
    """
    --start / --end を解析

    Returns
    -------
    tuple
        (start, end) のタプル（未指定はNone）

    Raises
    ------
    ValueError
        日付として解釈できない場合、または start > end の場合
    """
    start = pd.Timestamp(args.start) if args.start else None
    end = pd.Timestamp(args.end) if args.end else None

    if start is not None and end is not None and start > end:
        raise ValueError(f"開始日が終了日より後です: {args.start} > {args.end}")

    return start, end


def format_period(start, end) -> Optional[str]:
    """期間の表示文字列（未指定ならNone）"""
    if start is None and end is None:
        return None
    start_str = start.strftime('%Y-%m-%d') if start is not None else '…'
    end_str = end.strftime('%Y-%m-%d') if end is not None else '…'
    return f"{start_str} 〜 {end_str}"


def determine_output_dir(
    default_output: Path,
    start: Optional[pd.Timestamp],
    end: Optional[pd.Timestamp],
    subject_id: Optional[str] = None
) -> Path:
    """
    出力ディレクトリを決定

    期間指定がある場合は <output>/<start>_<end>、
    被験者指定がある場合はさらに subjects/<subject_id> を付与する。
    """
    output_dir = Path(default_output)
    if start is not None or end is not None:
        start_str = start.strftime('%Y%m%d') if start is not None else 'begin'
        end_str = end.strftime('%Y%m%d') if end is not None else 'end'
        output_dir = output_dir / f"{start_str}_{end_str}"
    if subject_id is not None:
        output_dir = output_dir / 'subjects' / str(subject_id)
    return output_dir
