"""
データローディングユーティリティ

モダリティごとに保存された被験者別DataFrame（pickle）の読み込みと、
日時列のベストエフォートな解析を提供する。
"""
import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from cohort.modalities import MODALITY_ORDER, SUBJECT_ID_COLUMNS, get_modality

logger = logging.getLogger(__name__)

# 列メタデータ（外部の静的ルックアップファイル）の列
METADATA_COLUMNS = ['modality', 'column', 'description', 'unit']

# 日時としてパースできた値がこの割合未満なら列をスキップ
MIN_PARSED_RATIO = 0.5


def _normalize_id(value) -> str:
    """被験者IDを文字列に揃える（1001.0 -> '1001'）"""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def extract_subject_id(df: pd.DataFrame, fallback=None) -> Optional[str]:
    """
    DataFrameから被験者IDを取得

    ID列（participant_id, person_id, ...）の最初の非欠損値、
    df.attrs['subject_id']、fallbackの順に探す。

    Parameters
    ----------
    df : DataFrame
        被験者1名分のデータ
    fallback : optional
        IDが見つからない場合の値

    Returns
    -------
    str or None
        被験者ID
    """
    for col in SUBJECT_ID_COLUMNS:
        if col in df.columns:
            values = df[col].dropna()
            if len(values) > 0:
                return _normalize_id(values.iloc[0])

    attr_id = df.attrs.get('subject_id')
    if attr_id is not None:
        return _normalize_id(attr_id)

    if fallback is None:
        return None
    return _normalize_id(fallback)


def _id_column(df):
    for col in SUBJECT_ID_COLUMNS:
        if col in df.columns:
            return col
    return None


def _looks_like_time(name) -> bool:
    name = str(name).lower()
    return 'time' in name or 'date' in name


def parse_datetime_columns(df: pd.DataFrame, candidates=None) -> tuple[pd.DataFrame, list[str]]:
    """
    日時列をベストエフォートでパース

    候補列ごとに pd.to_datetime を試し、失敗した列・パースできた値が
    半分未満の列はそのまま残してスキップする。
    タイムゾーン付きの列はUTCに揃えてからタイムゾーンナイーブに変換する。

    Parameters
    ----------
    df : DataFrame
        対象データ
    candidates : list of str, optional
        パース対象の列名。Noneの場合は列名に time/date を含む文字列列

    Returns
    -------
    tuple[DataFrame, list[str]]
        (パース後のDataFrame, パースできた列名のリスト)
    """
    df = df.copy()
    if candidates is None:
        candidates = [c for c in df.columns if _looks_like_time(c)]

    parsed = []
    for col in candidates:
        if col not in df.columns:
            continue
        series = df[col]

        # 既にdatetime型の場合はタイムゾーンのみ揃える
        if isinstance(series.dtype, pd.DatetimeTZDtype):
            df[col] = series.dt.tz_convert('UTC').dt.tz_localize(None)
            parsed.append(col)
            continue
        if pd.api.types.is_datetime64_any_dtype(series):
            parsed.append(col)
            continue

        # 数値列はエポック値と誤認するため対象外
        if pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series):
            continue

        non_null = series.notna().sum()
        if non_null == 0:
            continue

        try:
            converted = pd.to_datetime(series, errors='coerce', utc=True, format='mixed')
        except (TypeError, ValueError, OverflowError) as e:
            logger.debug(f"Skip column '{col}': {e}")
            continue

        if converted.notna().sum() < non_null * MIN_PARSED_RATIO:
            logger.debug(f"Skip column '{col}': too few parsable values")
            continue

        df[col] = converted.dt.tz_localize(None)
        parsed.append(col)

    return df, parsed


def detect_time_column(df: pd.DataFrame, spec=None) -> Optional[str]:
    """
    タイムスタンプ列を特定

    モダリティ定義の候補列（datetime型のもの）を優先し、
    なければ最初のdatetime型列を返す。
    """
    if spec is not None:
        for col in spec.time_columns:
            if col in df.columns and pd.api.types.is_datetime64_any_dtype(df[col]):
                return col

    for col in df.columns:
        if pd.api.types.is_datetime64_any_dtype(df[col]):
            return col
    return None


def _iter_subject_frames(obj, modality):
    """pickleの中身を (subject_id, DataFrame) に展開"""
    if isinstance(obj, dict):
        for key, df in obj.items():
            yield _normalize_id(key), df

    elif isinstance(obj, (list, tuple)):
        for i, df in enumerate(obj):
            if not isinstance(df, pd.DataFrame):
                logger.warning(f"{modality}: item {i} is {type(df).__name__}, skipped")
                continue
            yield extract_subject_id(df, fallback=f"{modality}_{i:03d}"), df

    elif isinstance(obj, pd.DataFrame):
        # 1つのDataFrameに全被験者が入っている場合（臨床データなど）
        id_col = _id_column(obj)
        if id_col is None:
            yield extract_subject_id(obj, fallback=f"{modality}_000"), obj
        else:
            for subject_id, group in obj.dropna(subset=[id_col]).groupby(id_col, sort=True):
                yield _normalize_id(subject_id), group.reset_index(drop=True)

    else:
        raise TypeError(
            f"{modality}: unsupported payload type {type(obj).__name__} "
            "(expected list, dict or DataFrame)"
        )


def load_modality(path: Path, modality: str) -> dict[str, pd.DataFrame]:
    """
    1モダリティ分の被験者別データを読み込む

    Parameters
    ----------
    path : Path
        pickleファイルパス（list / dict / DataFrame のいずれか）
    modality : str
        モダリティキー

    Returns
    -------
    dict[str, DataFrame]
        被験者ID -> DataFrame（日時列はパース済み、ID順）
        ファイルがない場合は空dict
    """
    spec = get_modality(modality)
    path = Path(path)
    if not path.exists():
        logger.warning(f"{modality}: {path} not found")
        return {}

    obj = pd.read_pickle(path)

    frames = {}
    for subject_id, df in _iter_subject_frames(obj, modality):
        if not isinstance(df, pd.DataFrame):
            logger.warning(f"{modality}: subject {subject_id} is {type(df).__name__}, skipped")
            continue
        if df.empty:
            continue

        candidates = [c for c in spec.time_columns if c in df.columns]
        candidates += [c for c in df.columns if _looks_like_time(c) and c not in candidates]
        df, _ = parse_datetime_columns(df, candidates)

        # 同一被験者が複数回出てくる場合は結合
        if subject_id in frames:
            frames[subject_id] = pd.concat([frames[subject_id], df], ignore_index=True)
        else:
            frames[subject_id] = df.reset_index(drop=True)

    logger.info(f"{modality}: {len(frames)} subjects loaded from {path.name}")
    return dict(sorted(frames.items()))


def load_dataset(data_dir: Path, modalities=None, suffix: str = '.pkl') -> dict[str, dict[str, pd.DataFrame]]:
    """
    全モダリティを読み込む

    Parameters
    ----------
    data_dir : Path
        <modality>.pkl が置かれたディレクトリ
    modalities : list of str, optional
        読み込むモダリティ（Noneで全モダリティ）
    suffix : str
        ファイル拡張子

    Returns
    -------
    dict
        モダリティ -> {被験者ID -> DataFrame}
    """
    if modalities is None:
        modalities = MODALITY_ORDER

    data_dir = Path(data_dir)
    return {m: load_modality(data_dir / f"{m}{suffix}", m) for m in modalities}


def load_column_metadata(path: Path) -> pd.DataFrame:
    """
    列メタデータ（modality, column, description, unit）を読み込む

    ファイルがない場合は空のDataFrameを返す。

    Raises
    ------
    ValueError
        modality / column 列がない場合
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Column metadata {path} not found")
        return pd.DataFrame(columns=METADATA_COLUMNS)

    df = pd.read_csv(path, dtype=str)
    missing = [c for c in ('modality', 'column') if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: required columns missing: {', '.join(missing)}")

    for col in ('description', 'unit'):
        if col not in df.columns:
            df[col] = ''
    return df[METADATA_COLUMNS].fillna('')


def clip_to_period(frames: dict, modality: str, start=None, end=None) -> dict[str, pd.DataFrame]:
    """
    被験者別データを期間で絞り込む

    endは日単位で含む。タイムスタンプ列がないデータはそのまま残し、
    期間内にレコードがなくなった被験者は除外する。
    """
    if start is None and end is None:
        return frames

    spec = get_modality(modality)
    start = pd.Timestamp(start).normalize() if start is not None else None
    end_exclusive = pd.Timestamp(end).normalize() + pd.Timedelta(days=1) if end is not None else None

    clipped = {}
    for subject_id, df in frames.items():
        time_col = detect_time_column(df, spec)
        if time_col is None:
            clipped[subject_id] = df
            continue

        mask = df[time_col].notna()
        if start is not None:
            mask &= df[time_col] >= start
        if end_exclusive is not None:
            mask &= df[time_col] < end_exclusive

        df = df[mask]
        if not df.empty:
            clipped[subject_id] = df.reset_index(drop=True)

    return clipped
