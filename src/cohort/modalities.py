#!/usr/bin/env python
# coding: utf-8
"""
モダリティ定義

各センサーデータ（CGM、心拍数、睡眠など）の列名候補・単位・妥当範囲を管理する。
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


# 被験者IDとして扱う列名（先頭優先）
SUBJECT_ID_COLUMNS = ['participant_id', 'person_id', 'subject_id', 'pid', 'user_id']


@dataclass(frozen=True)
class ModalitySpec:
    """
    モダリティ定義

    Attributes
    ----------
    key : str
        モダリティキー（ファイル名にも使用）
    label : str
        表示名
    time_columns : list of str
        タイムスタンプ列の候補（先頭優先）
    value_columns : list of str
        代表値列の候補（先頭優先）
    unit : str
        代表値の単位
    valid_range : tuple of float, optional
        生理学的に妥当な範囲 (min, max)
    daily : bool
        日次で記録されるモダリティか（Falseの場合は単発の記録で、
        最低記録日数フィルタは有無のみで判定）
    """
    key: str
    label: str
    time_columns: List[str] = field(default_factory=list)
    value_columns: List[str] = field(default_factory=list)
    unit: str = ''
    valid_range: Optional[Tuple[float, float]] = None
    daily: bool = True


MODALITIES = {
    'cgm': ModalitySpec(
        key='cgm',
        label='CGM',
        time_columns=['timestamp', 'effective_time_frame', 'datetime', 'time'],
        value_columns=['glucose', 'blood_glucose', 'glucose_value'],
        unit='mg/dL',
        valid_range=(40, 400),
    ),
    'heart_rate': ModalitySpec(
        key='heart_rate',
        label='Heart Rate',
        time_columns=['timestamp', 'effective_time_frame', 'datetime'],
        value_columns=['heart_rate', 'bpm', 'value'],
        unit='bpm',
        valid_range=(30, 220),
    ),
    'sleep': ModalitySpec(
        key='sleep',
        label='Sleep',
        time_columns=['start_time', 'timestamp', 'sleep_start', 'datetime'],
        value_columns=['sleep_stage_state', 'stage'],
    ),
    'stress': ModalitySpec(
        key='stress',
        label='Stress',
        time_columns=['timestamp', 'effective_time_frame', 'datetime'],
        value_columns=['stress_level', 'stress', 'value'],
        valid_range=(0, 100),
    ),
    'calories': ModalitySpec(
        key='calories',
        label='Calories',
        time_columns=['timestamp', 'effective_time_frame', 'datetime'],
        value_columns=['calories_value', 'calories', 'value'],
        unit='kcal',
        valid_range=(0, 5000),
    ),
    'respiratory_rate': ModalitySpec(
        key='respiratory_rate',
        label='Respiratory Rate',
        time_columns=['timestamp', 'effective_time_frame', 'datetime'],
        value_columns=['respiratory_rate', 'breathing_rate', 'value'],
        unit='brpm',
        valid_range=(4, 40),
    ),
    'oxygen_saturation': ModalitySpec(
        key='oxygen_saturation',
        label='SpO2',
        time_columns=['timestamp', 'effective_time_frame', 'datetime'],
        value_columns=['oxygen_saturation', 'spo2', 'value'],
        unit='%',
        valid_range=(70, 100),
    ),
    'ecg': ModalitySpec(
        key='ecg',
        label='ECG',
        time_columns=['ecg_timestamp', 'timestamp', 'acquisition_time', 'datetime'],
        daily=False,
    ),
    'clinical': ModalitySpec(
        key='clinical',
        label='Clinical',
        time_columns=['visit_date', 'acquisition_date', 'date'],
        daily=False,
    ),
}

# レポートの表示順
MODALITY_ORDER = list(MODALITIES.keys())


def get_modality(key):
    """
    モダリティ定義を取得

    Raises
    ------
    ValueError
        未定義のモダリティキーの場合
    """
    try:
        return MODALITIES[key]
    except KeyError:
        raise ValueError(
            f"不明なモダリティ '{key}'（指定可能: {', '.join(MODALITY_ORDER)}）"
        ) from None


def modality_label(key):
    """表示名（未定義キーはそのまま返す）"""
    spec = MODALITIES.get(key)
    return spec.label if spec else key
