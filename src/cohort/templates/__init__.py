#!/usr/bin/env python
# coding: utf-8
"""
テンプレートレンダリングパッケージ

Jinja2を使用したレポート生成機能を提供
"""

from .renderer import CohortReportRenderer

__all__ = ['CohortReportRenderer']
