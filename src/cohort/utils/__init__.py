"""
共通ユーティリティ
"""
