"""
ウェアラブル・臨床データのコホートカバレッジレポート
"""

__version__ = '0.1.0'
