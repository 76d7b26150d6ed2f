"""
UIメッセージ国際化モジュール。

OSのロケールに基づいて日本語/英語のUIメッセージを自動切替する。
"""
import locale
import os
import sys

MESSAGES: dict[str, dict[str, str]] = {
    "ja": {
        # ツールタイトル
        "tool_title": "PageSync - 固定レイアウト読み上げEPUB3ツール",

        # 言語選択
        "select_language": "言語を選択してください / Select language:",
        "language_prompt": "言語 / Language (1-{n}, デフォルト: 1): ",
        "selected_language": "選択された言語: {name}",
        "default_language": "デフォルト言語を使用: {name}",

        # ハイライト単位選択
        "select_granularity": "ハイライト単位を選択してください:",
        "opt_granularity_as_is": "同期データの単位のまま（デフォルト）",
        "opt_granularity_word": "単語",
        "opt_granularity_sentence": "文",
        "opt_granularity_paragraph": "段落",

        # 共通選択UI
        "choice_prompt": "選択 (1-{n}, デフォルト: {d}): ",
        "invalid_value": "無効な値です。1-{n}の範囲で入力してください。デフォルト値({d})を使用します。",
        "invalid_input": "無効な入力です。数値を入力してください。デフォルト値({d})を使用します。",

        # パス入力
        "prompt_folder_path": "ジョブフォルダ（pages.json を含むフォルダ）のパスを指定してください\n",

        # 中間ファイル
        "keep_intermediate_question": "中間ファイル（META-INF, OEBPS）を残しますか？",
        "keep_intermediate_dest": "残す場合の出力先: {path}",
        "opt_keep_no": "残さない（デフォルト）",
        "opt_keep_yes": "残す",

        # 処理ログ
        "processing_start": "処理開始: {time}",
        "processing_end": "処理終了: {time}",
        "elapsed_time": "所要時間: {time}",
        "output_file": "生成ファイル: {path}",
        "intermediate_saved": "中間ファイルを保存しました: {path}",
        "pages_without_narration": "音声同期のないページ: {pages}",
        "processing_aborted": "処理を中断しました。",

        # エラー・バリデーション
        "folder_not_found": "フォルダが見つかりません: {path}",

        # メタデータエラー
        "metadata_not_found": "エラー：書誌情報がありません\n期待されるファイル: {path}\n処理を中断しました。",
        "metadata_no_title": "エラー：書誌情報にタイトルがありません\n処理を中断しました。",

        # ロガープレフィックス
        "log_warning": "警告: {message}",
        "log_success": "成功: {message}",
        "log_progress": "処理中: {message} {current}/{total}",
        "log_page_warning": "警告: [p.{page}] {message}",
        "log_page": "[p.{page}] {message}",

        # 例外メッセージ
        "exception_file_not_found": "{file_type}が見つかりません: {file_path}",
        "exception_cancelled": "ジョブがキャンセルされました: {job_id}",

        # ファイル種別名（FileNotFoundError_ の file_type 引数用）
        "file_type_job_folder": "ジョブフォルダ",
        "file_type_pages": "ページ抽出結果",

        # 入力の読み込み
        "pages_loaded": "{count} ページを読み込みました。",
        "pages_load_failed": "ページ抽出結果を読み込めません: {path} ({error})",
        "page_number_missing": "ページ番号のないページがあります。",
        "unknown_block_type": "未知のブロック種別 '{type}' を段落として扱います。",
        "sync_loaded": "{count} 件の同期レコードを読み込みました。",
        "sync_load_failed": "同期レコードを読み込めません: {path} ({error})",
        "sync_record_invalid": "同期レコードの形式が不正です: {record}",
        "sync_not_found": "同期レコードがありません（音声なしで出力します）: {path}",
        "textgrid_load_failed": "TextGridファイルを読み込めません: {path} ({error})",
        "textgrid_tier_missing": "TextGridに単語ティアがありません: {tier}",
        "textgrid_loaded": "TextGridを読み込みました: {path}（{count} 単語）",
        "read_failed": "ファイルを読み込めません: {path} ({error})",

        # レイアウト
        "page_image_missing": "ページ画像がないため、このページを出力しません。",
        "page_size_invalid": "ページ寸法 {key} の値が不正です（{value}）。既定値 {default} を使用します。",
        "page_failed": "ページの生成に失敗したため、このページを出力しません: {error}",
        "emergency_block_used": "テキストブロックがないため、ページ本文から緊急ブロックを生成しました。",
        "blank_page": "テキストのない空白ページです。",
        "repetitive_text_found": "繰り返しテキストを検出しました: {text}",
        "repetitive_text_skipped": "繰り返しテキストのブロックを除外しました: {block_id}",
        "markup_parse_failed": "ページXHTMLを解析できません: {error}",
        "markup_repaired": "ページXHTMLを修復しました: {fixes}",
        "markup_repair_failed": "修復後もページXHTMLを解析できないため、レイアウト順を使用します。",

        # 音声同期・SMIL
        "sync_not_read": "読み上げ対象外の同期レコードを {count} 件除外しました。",
        "sync_invalid_time": "同期レコードの時刻が不正です: {block_id} ({start} - {end})",
        "sync_unresolved": "同期レコードのブロックIDを解決できません: {block_id}",
        "sync_resolved": "{block_id} → {markup_id}（{strategy}）",
        "sync_dropped": "同期レコードを除外しました: {block_id}（{reason}）",
        "sync_drop_count": "{count} 件の同期レコードを除外しました。",
        "smil_no_records": "有効な同期レコードがないため、SMILを生成しません。",
        "granularity_unknown": "未対応のハイライト単位です: {granularity}（対応: {available}）",
        "granularity_empty": "ハイライト単位 '{granularity}' に変換できる同期レコードがありません。",
        "audio_unreadable": "音声ファイルを読み込めないため、音声同期なしで出力します: {path}",

        # パッケージング
        "manifest_empty": "出力できるページがありません。",
        "spine_empty": "spine が空です。",
        "manifest_duplicate_id": "manifest のIDが重複しています。",
        "spine_unknown_item": "spine が manifest にない項目を参照しています: {idref}",
        "media_overlay_unknown": "media-overlay の参照先がありません: {ref}",
        "archive_reserved_path": "予約済みのパスには追加できません: {path}",
        "archive_duplicate_path": "同じパスのファイルが既にあります: {path}",
        "archive_missing_container": "META-INF/container.xml がありません。",
        "archive_written": "EPUBパッケージを書き出しました: {path}（{count} ファイル）",

        # 検証
        "validate_not_zip": "ZIPファイルではありません: {error}",
        "validate_mimetype_not_first": "mimetype が先頭のエントリーではありません。",
        "validate_mimetype_compressed": "mimetype が圧縮されています。",
        "validate_mimetype_content": "mimetype の内容が不正です。",
        "validate_missing_file": "ファイルがありません: {path}",
        "validate_xml_error": "XMLを解析できません: {path} ({error})",
        "validate_no_nav": "nav 文書が manifest にありません。",
        "validate_smil_target_missing": "SMILの参照先ファイルがありません: {smil} → {target}",
        "validate_smil_anchor_missing": "SMILの参照先IDがありません: {smil} → #{anchor}",
        "validation_problem": "検証エラー: {problem}",

        # 変換ジョブ
        "conversion_start": "固定レイアウトEPUBを生成します（ジョブ: {job_id}、{count} ページ）。",
        "conversion_cancelled": "ジョブがキャンセルされました: {job_id}",
        "conversion_summary": "ページ数: {pages}（音声同期あり: {narrated}、スキップ: {skipped}）、除外した同期レコード: {dropped}",
        "progress_pages": "ページ",
        "job_gate_acquired": "ジョブを開始します: {job_id}",
        "job_gate_released": "ジョブを終了しました: {job_id}",
        "job_gate_busy": "他のジョブが実行中のため開始できません: {job_id}",
        "epub_saved": "EPUBファイルを生成しました: {file}",
    },
    "en": {
        # Tool title
        "tool_title": "PageSync - Fixed-Layout Read-Aloud EPUB3 Tool",

        # Language selection
        "select_language": "Select language:",
        "language_prompt": "Language (1-{n}, default: 1): ",
        "selected_language": "Selected language: {name}",
        "default_language": "Using default language: {name}",

        # Highlight granularity selection
        "select_granularity": "Select highlight granularity:",
        "opt_granularity_as_is": "As in the sync data (default)",
        "opt_granularity_word": "Word",
        "opt_granularity_sentence": "Sentence",
        "opt_granularity_paragraph": "Paragraph",

        # Common selection UI
        "choice_prompt": "Selection (1-{n}, default: {d}): ",
        "invalid_value": "Invalid value. Enter a number between 1-{n}. Using default ({d}).",
        "invalid_input": "Invalid input. Enter a number. Using default ({d}).",

        # Path input
        "prompt_folder_path": "Specify the path to the job folder (containing pages.json)\n",

        # Intermediate files
        "keep_intermediate_question": "Keep intermediate files (META-INF, OEBPS)?",
        "keep_intermediate_dest": "Output destination if kept: {path}",
        "opt_keep_no": "Do not keep (default)",
        "opt_keep_yes": "Keep",

        # Processing log
        "processing_start": "Processing started: {time}",
        "processing_end": "Processing finished: {time}",
        "elapsed_time": "Elapsed time: {time}",
        "output_file": "Output file: {path}",
        "intermediate_saved": "Intermediate files saved: {path}",
        "pages_without_narration": "Pages without narration: {pages}",
        "processing_aborted": "Processing aborted.",

        # Error / validation
        "folder_not_found": "Folder not found: {path}",

        # Metadata errors
        "metadata_not_found": "Error: Metadata file not found\nExpected file: {path}\nProcessing aborted.",
        "metadata_no_title": "Error: No title found in metadata\nProcessing aborted.",

        # Logger prefixes
        "log_warning": "Warning: {message}",
        "log_success": "Success: {message}",
        "log_progress": "Processing: {message} {current}/{total}",
        "log_page_warning": "Warning: [p.{page}] {message}",
        "log_page": "[p.{page}] {message}",

        # Exception messages
        "exception_file_not_found": "{file_type} not found: {file_path}",
        "exception_cancelled": "Job cancelled: {job_id}",

        # File type names (for FileNotFoundError_ file_type argument)
        "file_type_job_folder": "job folder",
        "file_type_pages": "page extraction result",

        # Input loading
        "pages_loaded": "Loaded {count} page(s).",
        "pages_load_failed": "Cannot load page extraction result: {path} ({error})",
        "page_number_missing": "A page has no page number.",
        "unknown_block_type": "Unknown block type '{type}', treating as paragraph.",
        "sync_loaded": "Loaded {count} sync record(s).",
        "sync_load_failed": "Cannot load sync records: {path} ({error})",
        "sync_record_invalid": "Malformed sync record: {record}",
        "sync_not_found": "No sync records (output without narration): {path}",
        "textgrid_load_failed": "Cannot load TextGrid file: {path} ({error})",
        "textgrid_tier_missing": "TextGrid has no word tier: {tier}",
        "textgrid_loaded": "Loaded TextGrid: {path} ({count} word(s))",
        "read_failed": "Cannot read file: {path} ({error})",

        # Layout
        "page_image_missing": "Page image is missing, skipping this page.",
        "page_size_invalid": "Invalid page dimension {key} ({value}), using default {default}.",
        "page_failed": "Failed to generate this page, skipping it: {error}",
        "emergency_block_used": "No text blocks, synthesized an emergency block from the page text.",
        "blank_page": "Blank page with no text.",
        "repetitive_text_found": "Repetitive text detected: {text}",
        "repetitive_text_skipped": "Skipped repetitive text block: {block_id}",
        "markup_parse_failed": "Cannot parse page XHTML: {error}",
        "markup_repaired": "Repaired page XHTML: {fixes}",
        "markup_repair_failed": "Page XHTML is still unparsable after repair, using layout order.",

        # Audio sync / SMIL
        "sync_not_read": "Excluded {count} sync record(s) marked as not to be read.",
        "sync_invalid_time": "Invalid sync record times: {block_id} ({start} - {end})",
        "sync_unresolved": "Cannot resolve sync record block id: {block_id}",
        "sync_resolved": "{block_id} -> {markup_id} ({strategy})",
        "sync_dropped": "Dropped sync record: {block_id} ({reason})",
        "sync_drop_count": "Dropped {count} sync record(s).",
        "smil_no_records": "No valid sync records, SMIL not generated.",
        "granularity_unknown": "Unsupported highlight granularity: {granularity} (available: {available})",
        "granularity_empty": "No sync records could be converted to granularity '{granularity}'.",
        "audio_unreadable": "Audio file is unreadable, output without narration: {path}",

        # Packaging
        "manifest_empty": "No pages to output.",
        "spine_empty": "The spine is empty.",
        "manifest_duplicate_id": "Duplicate manifest ids.",
        "spine_unknown_item": "Spine refers to an item not in the manifest: {idref}",
        "media_overlay_unknown": "media-overlay target not found: {ref}",
        "archive_reserved_path": "Cannot add a reserved path: {path}",
        "archive_duplicate_path": "A file with the same path already exists: {path}",
        "archive_missing_container": "META-INF/container.xml is missing.",
        "archive_written": "EPUB package written: {path} ({count} file(s))",

        # Validation
        "validate_not_zip": "Not a ZIP file: {error}",
        "validate_mimetype_not_first": "mimetype is not the first entry.",
        "validate_mimetype_compressed": "mimetype is compressed.",
        "validate_mimetype_content": "mimetype content is invalid.",
        "validate_missing_file": "File missing: {path}",
        "validate_xml_error": "Cannot parse XML: {path} ({error})",
        "validate_no_nav": "No nav document in the manifest.",
        "validate_smil_target_missing": "SMIL target file missing: {smil} -> {target}",
        "validate_smil_anchor_missing": "SMIL target id missing: {smil} -> #{anchor}",
        "validation_problem": "Validation error: {problem}",

        # Conversion job
        "conversion_start": "Generating fixed-layout EPUB (job: {job_id}, {count} page(s)).",
        "conversion_cancelled": "Job cancelled: {job_id}",
        "conversion_summary": "Pages: {pages} (narrated: {narrated}, skipped: {skipped}), dropped sync records: {dropped}",
        "progress_pages": "pages",
        "job_gate_acquired": "Job started: {job_id}",
        "job_gate_released": "Job finished: {job_id}",
        "job_gate_busy": "Cannot start, another job is running: {job_id}",
        "epub_saved": "EPUB file generated: {file}",
    },
}

# OS言語判定
def _detect_ui_language() -> str:
    """OSのロケールから UI 言語を判定する。"""
    # macOS: システム言語設定（AppleLanguages）を最優先
    # LANG=C.UTF-8 等はシステム言語と無関係なため、macOS設定を先にチェック
    if sys.platform == "darwin":
        try:
            import subprocess
            result = subprocess.run(
                ["defaults", "read", "-g", "AppleLanguages"],
                capture_output=True, text=True, timeout=2
            )
            if result.returncode == 0:
                # 出力例: ("ja-JP", "en-US", ...) → 先頭の言語コードを取得
                for line in result.stdout.splitlines():
                    line = line.strip().strip('",() ')
                    if line:
                        return "ja" if line.startswith("ja") else "en"
        except Exception:
            pass
    # 環境変数をチェック（LC_ALL, LC_MESSAGES, LANG）
    # C / C.UTF-8 / POSIX はデフォルト値のため言語指定なしとして除外
    for env_var in ("LC_ALL", "LC_MESSAGES", "LANG"):
        value = os.environ.get(env_var, "")
        if value and not value.startswith("C") and value != "POSIX":
            return "ja" if value.startswith("ja") else "en"
    # フォールバック: locale.getlocale()
    # Windows では "Japanese_Japan" のように返るため、大文字小文字を無視して判定
    try:
        loc = locale.getlocale()[0] or ""
    except ValueError:
        loc = ""
    return "ja" if loc.lower().startswith("ja") else "en"

_ui_lang = _detect_ui_language()


def set_ui_language(lang_code: str) -> None:
    """
    UIメッセージ言語を手動で設定する。

    言語選択UIでユーザーが選択した言語に合わせて呼び出す。

    Parameters
    ----------
    lang_code : str
        言語コード（例: "ja_JP", "en_US", "de_DE"）。
        "ja" で始まる場合は日本語、それ以外は英語を使用する。
    """
    global _ui_lang
    _ui_lang = "ja" if lang_code.startswith("ja") else "en"


def msg(key: str, /, **kwargs) -> str:
    """
    指定キーのUIメッセージを現在のロケールに応じて返す。

    Parameters
    ----------
    key : str
        メッセージキー
    **kwargs
        メッセージ内のプレースホルダーに渡す値

    Returns
    -------
    str
        ロケールに応じたメッセージ文字列
    """
    template = MESSAGES[_ui_lang].get(key, key)
    if kwargs:
        return template.format(**kwargs)
    return template
