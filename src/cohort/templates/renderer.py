#!/usr/bin/env python
# coding: utf-8
"""
レポートテンプレートレンダラー

Jinja2を使用してMarkdownレポートを生成
"""

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


class CohortReportRenderer:
    """コホートレポートのテンプレートレンダラー"""

    def __init__(self, template_dir=None):
        """
        Parameters
        ----------
        template_dir : str or Path, optional
            テンプレートディレクトリのパス
            Noneの場合はプロジェクトルート/templatesを使用
        """
        if template_dir is None:
            # プロジェクトルート/templatesをデフォルトに
            template_dir = Path(__file__).resolve().parents[3] / 'templates'

        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape([]),  # Markdownなのでautoescape無効
            trim_blocks=True,          # ブロックタグの改行を削除
            lstrip_blocks=True         # ブロック前の空白を削除
        )

        # カスタムフィルタを登録
        self._register_filters()

    def _register_filters(self):
        """カスタムフィルタをJinja2環境に登録"""
        from .filters import format_change, number_format, percent_format
        from cohort.modalities import modality_label

        self.env.filters['format_change'] = format_change
        self.env.filters['number_format'] = number_format
        self.env.filters['percent_format'] = percent_format
        self.env.filters['modality_label'] = modality_label

    def _render(self, template_name, context):
        try:
            template = self.env.get_template(template_name)
            return template.render(**context)
        except Exception as e:
            logger.error(f"Template rendering failed: {e}")
            raise

    def render_cohort_report(self, context):
        """
        コホート全体のレポートを生成

        Parameters
        ----------
        context : dict
            テンプレートコンテキスト
            必須キー: report_title, generated_at, data_dir, min_days,
                     modalities, overview, tables, charts

        Returns
        -------
        str
            レンダリングされたMarkdown

        Raises
        ------
        jinja2.TemplateNotFound
            テンプレートファイルが見つからない場合
        jinja2.TemplateSyntaxError
            テンプレート構文エラーがある場合
        """
        return self._render('cohort/cohort_report.md.j2', context)

    def render_subject_report(self, context):
        """
        被験者別レポートを生成

        Parameters
        ----------
        context : dict
            テンプレートコンテキスト
            必須キー: report_title, generated_at, subject_id,
                     modalities, tables, charts

        Returns
        -------
        str
            レンダリングされたMarkdown
        """
        return self._render('cohort/subject_report.md.j2', context)
