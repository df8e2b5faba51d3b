#!/usr/bin/env python
# coding: utf-8
"""
Jinja2カスタムフィルタ

レポートテンプレート用のフォーマット関数を提供
"""

import pandas as pd


def format_change(value, unit='', positive_is_good=True, decimals=2):
    """
    変化量をフォーマット（良い変化は太字）

    Parameters
    ----------
    value : float
        変化量
    unit : str
        単位（'%', '人'など）
    positive_is_good : bool
        プラスが良い変化かどうか
        - True: 被験者数、カバー率など（増加が良い）
        - False: 欠損率など（減少が良い）
    decimals : int
        小数点以下の桁数（人数は0）

    Returns
    -------
    str
        フォーマットされた変化量

    Examples
    --------
    >>> format_change(2.5, '%', positive_is_good=True)
    '**+2.50%**'
    >>> format_change(-3, '', positive_is_good=True)
    '-3.00'
    >>> format_change(-1, '名', decimals=0)
    '-1名'
    >>> format_change(0, '')
    '±0'
    """
    if value is None or pd.isna(value):
        return "-"
    if value == 0:
        return f"±0{unit}"

    sign = '+' if value > 0 else ''
    formatted = f"{sign}{value:.{decimals}f}{unit}"

    is_good = (value > 0 and positive_is_good) or (value < 0 and not positive_is_good)
    if is_good:
        return f"**{formatted}**"
    return formatted


def number_format(value, decimals=1):
    """
    数値をフォーマット（NaN対応）

    Examples
    --------
    >>> number_format(12.345, 1)
    '12.3'
    >>> number_format(None, 1)
    '-'
    """
    if value is None or pd.isna(value):
        return '-'
    return f"{value:,.{decimals}f}"


def percent_format(value, decimals=1):
    """
    割合（0-100）を%付きでフォーマット

    >>> percent_format(87.456)
    '87.5%'
    """
    if value is None or pd.isna(value):
        return '-'
    return f"{value:.{decimals}f}%"
