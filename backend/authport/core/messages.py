"""
User-facing text for the export/import commands, in English and Japanese.

Engine errors stay in English; the CLI looks up the strings below for the
warning, prompts, the errors a user can act on, and the success lines.
"""

import os
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple


class Language(str, Enum):
    EN = "en"
    JA = "ja"


LANGUAGES = tuple(lang.value for lang in Language)

# key -> (en, ja)
_CATALOG: Dict[str, Tuple[str, str]] = {
    "warn.export_sensitive": (
        "WARNING: You are about to export sensitive authentication data.\n"
        "This file will contain access tokens that can be used to access your workspaces.\n"
        "Store this file securely and delete it after use.",
        "警告: 機密認証情報をエクスポートしようとしています。\n"
        "このファイルにはワークスペースへのアクセスに使用できるアクセストークンが含まれます。\n"
        "このファイルは安全に保管し、使用後は削除してください。",
    ),
    "warn.skipped": ("Warning: {warning}", "警告: {warning}"),
    "prompt.passphrase": ("Enter passphrase: ", "パスフレーズを入力してください: "),
    "prompt.passphrase_confirm": ("Confirm passphrase: ", "パスフレーズを再入力してください: "),
    "error.confirmation_required": (
        "Error: Export requires --yes flag for confirmation",
        "エラー: エクスポートには --yes フラグによる確認が必要です",
    ),
    "error.bad_permissions": (
        "File must have 0600 permissions (owner read/write only)",
        "ファイルは 0600 パーミッション（所有者の読み書きのみ）である必要があります",
    ),
    "error.passphrase_mismatch": ("Passphrases do not match", "パスフレーズが一致しません"),
    "error.empty_passphrase": ("Empty passphrase not allowed", "空のパスフレーズは許可されていません"),
    "error.output_exists": (
        "{path} already exists (use --force to overwrite)",
        "{path} はすでに存在します（上書きするには --force を使用してください）",
    ),
    "error.command_failed": ("{command} failed: {error}", "{command}に失敗しました: {error}"),
    "command.export": ("Export", "エクスポート"),
    "command.import": ("Import", "インポート"),
    "success.export": ("✓ Profiles exported successfully", "✓ プロファイルのエクスポートが完了しました"),
    "success.import": ("✓ Profiles imported successfully", "✓ プロファイルのインポートが完了しました"),
    "info.export_count": (
        "Exported {count} profile(s) to {path}",
        "{count} 件のプロファイルを {path} にエクスポートしました",
    ),
    "info.dry_run_banner": (
        "Dry-run mode: no changes were written.",
        "ドライランモード: 変更は書き込まれていません。",
    ),
    "info.dry_run_complete": (
        "Dry-run complete. Re-run without --dry-run to apply changes.",
        "ドライランが完了しました。変更を適用するには --dry-run を付けずに再実行してください。",
    ),
    "error.import_partial": ("Import finished with errors.", "インポートはエラーを伴って終了しました。"),
}


def language_from_code(code: Optional[str]) -> Optional[Language]:
    if not code:
        return None
    try:
        return Language(code.strip().lower())
    except ValueError:
        return None


def default_language(environ: Optional[Mapping[str, str]] = None) -> Language:
    """Japanese when LANG says so, English otherwise."""
    environ = os.environ if environ is None else environ
    return Language.JA if environ.get("LANG", "").lower().startswith("ja") else Language.EN


class Messages:
    def __init__(self, lang: Optional[Language] = None):
        self.lang = lang or default_language()

    @classmethod
    def for_code(cls, code: Optional[str]) -> "Messages":
        return cls(language_from_code(code))

    def get(self, key: str) -> str:
        en, ja = _CATALOG[key]
        return ja if self.lang == Language.JA else en

    def format(self, key: str, **values) -> str:
        return self.get(key).format(**values)


ENGLISH = Messages(Language.EN)
