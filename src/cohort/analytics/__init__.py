"""
データ分析・計算モジュール

カバレッジ・欠損・重複・品質の集計を提供（データ形式非依存）
"""

from . import charts
from . import coverage
from . import filtering
from . import missingness
from . import overlap
from . import quality
from . import tables
