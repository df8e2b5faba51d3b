#!/usr/bin/env python
# coding: utf-8
"""
統一レポート生成スクリプト

cohort/subjectのレポートを統一的に生成する。
残りの引数は各スクリプトにそのまま渡す。

Usage:
    python generate_report.py cohort --min-days 14
    python generate_report.py subject --subject 1001
    python generate_report.py cohort --modalities cgm,heart_rate --start 2024-01-01
"""

import sys
import subprocess
from pathlib import Path
import argparse


# スクリプトディレクトリ
SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent

# レポートタイプとスクリプトのマッピング
REPORT_SCRIPTS = {
    'cohort': 'generate_cohort_report.py',
    'subject': 'generate_subject_report.py',
}


def build_command(report_type: str, extra_args: list[str]) -> list[str]:
    """
    レポート生成スクリプトの実行コマンドを構築

    Raises
    ------
    ValueError
        不明なレポートタイプの場合
    """
    script_name = REPORT_SCRIPTS.get(report_type)
    if not script_name:
        raise ValueError(f"不明なレポートタイプ '{report_type}'")
    return [sys.executable, str(SCRIPT_DIR / script_name)] + list(extra_args)


def run_report_script(report_type: str, extra_args: list[str]) -> int:
    """レポート生成スクリプトを実行して終了コードを返す"""
    try:
        cmd = build_command(report_type, extra_args)
    except ValueError as e:
        print(f"エラー: {e}")
        return 1

    print(f"\n{'='*60}")
    print(f"実行: {report_type} レポート")
    print(f"{'='*60}\n")

    result = subprocess.run(cmd, cwd=str(PROJECT_ROOT))
    return result.returncode


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='統一レポート生成スクリプト',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s cohort                          # コホートレポート（最低10日）
  %(prog)s cohort --min-days 14            # 最低14日
  %(prog)s subject --subject 1001          # 被験者別レポート
        """
    )
    parser.add_argument('type', choices=sorted(REPORT_SCRIPTS), help='レポートタイプ')
    args, extra_args = parser.parse_known_args(argv)

    return run_report_script(args.type, extra_args)


if __name__ == '__main__':
    sys.exit(main())
