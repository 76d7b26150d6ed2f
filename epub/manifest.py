"""
manifest / spine 組み立てモジュール。

ページごとの生成結果（XHTML、画像、SMIL、音声）から、
OPFの manifest と spine をページ順に組み立てます。
"""
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from core.config import AUDIO_DIR, IMAGE_DIR, NAV_PATH, SMIL_DIR, STYLE_PATH, get_audio_media_type
from core.exceptions import PackagingError
from core.messages import msg
from epub.templates import ManifestItem, SpineItem, get_image_media_type

if TYPE_CHECKING:
    from audio.sync.builder import SmilDocument
    from layout.layers import PageLayout


XHTML_MEDIA_TYPE = "application/xhtml+xml"
SMIL_MEDIA_TYPE = "application/smil+xml"
CSS_MEDIA_TYPE = "text/css"

PAGE_SPREAD_PROPERTY = "rendition:page-spread-center"


@dataclass
class PageArtifacts:
    """1ページ分の生成結果。"""
    layout: "PageLayout"
    smil: "SmilDocument | None" = None
    audio_readable: bool = True       # SMILが参照する音声がすべて読み込めたか
    smil_error: str | None = None     # SMIL生成に失敗した理由（縮退したページ）

    @property
    def page_number(self) -> int:
        return self.layout.page_number

    @property
    def has_media_overlay(self) -> bool:
        return self.smil is not None and bool(self.smil.entries) and self.audio_readable


@dataclass
class PackageManifest:
    """組み立て済みの manifest / spine。"""
    manifest: list[ManifestItem] = field(default_factory=list)
    spine: list[SpineItem] = field(default_factory=list)
    durations: dict[str, float] = field(default_factory=dict)   # SMIL item ID → 再生時間
    audio_hrefs: dict[str, str] = field(default_factory=dict)   # 音声ファイルパス → パッケージ内ファイル名

    def item(self, item_id: str) -> ManifestItem | None:
        for item in self.manifest:
            if item.id == item_id:
                return item
        return None


def _unique_audio_name(source_path: str, used: set[str]) -> str:
    """パッケージ内で重複しない音声ファイル名を返す。"""
    path = PurePosixPath(source_path.replace("\\", "/"))
    name = path.name or "audio.mp3"
    candidate = name
    n = 1
    while candidate in used:
        n += 1
        candidate = f"{path.stem}_{n}{path.suffix}"
    used.add(candidate)
    return candidate


def assemble_manifest(pages: list[PageArtifacts]) -> PackageManifest:
    """
    manifest と spine を組み立てる。

    Parameters
    ----------
    pages : list[PageArtifacts]
        ページごとの生成結果（完了順でよい）。

    Returns
    -------
    PackageManifest
        ページ番号の昇順に並んだ manifest / spine。

    Raises
    ------
    PackagingError
        出力できるページがない場合、または media-overlay の参照先が
        manifest に存在しない場合。

    Notes
    -----
    media-overlay は、ページに空でないSMILがあり、かつSMILが参照する音声が
    すべて読み込めた場合にのみ、manifest の item と spine の itemref の両方に付ける。
    """
    if not pages:
        raise PackagingError(msg("manifest_empty"))

    result = PackageManifest()
    result.manifest.append(ManifestItem(
        id="nav", href=NAV_PATH, media_type=XHTML_MEDIA_TYPE, properties=["nav"]
    ))
    result.manifest.append(ManifestItem(id="css", href=STYLE_PATH, media_type=CSS_MEDIA_TYPE))

    audio_ids: dict[str, str] = {}
    used_names: set[str] = set()

    for page in sorted(pages, key=lambda p: p.page_number):
        layout = page.layout
        n = layout.page_number
        page_id = f"page_{n}"

        if layout.image_filename:
            result.manifest.append(ManifestItem(
                id=f"img_{n}",
                href=f"{IMAGE_DIR}/{layout.image_filename}",
                media_type=get_image_media_type(layout.image_filename),
            ))

        overlay_id = None
        if page.has_media_overlay:
            overlay_id = f"smil_{n}"
            result.manifest.append(ManifestItem(
                id=overlay_id,
                href=f"{SMIL_DIR}/{page.smil.smil_filename}",
                media_type=SMIL_MEDIA_TYPE,
            ))
            result.durations[overlay_id] = page.smil.total_duration
            for audio_path in page.smil.audio_files:
                if audio_path in audio_ids:
                    continue
                name = _unique_audio_name(audio_path, used_names)
                audio_ids[audio_path] = f"audio_{len(audio_ids) + 1}"
                result.audio_hrefs[audio_path] = name
                result.manifest.append(ManifestItem(
                    id=audio_ids[audio_path],
                    href=f"{AUDIO_DIR}/{name}",
                    media_type=get_audio_media_type(name),
                ))

        result.manifest.append(ManifestItem(
            id=page_id,
            href=layout.xhtml_href,
            media_type=XHTML_MEDIA_TYPE,
            media_overlay=overlay_id,
        ))
        result.spine.append(SpineItem(
            idref=page_id,
            properties=[PAGE_SPREAD_PROPERTY],
            media_overlay=overlay_id,
        ))

    verify_manifest(result)
    return result


def verify_manifest(manifest: PackageManifest) -> None:
    """
    manifest / spine の参照整合性を確認する。

    Raises
    ------
    PackagingError
        spine が空、IDの重複、または参照先が存在しない場合。
    """
    if not manifest.spine:
        raise PackagingError(msg("spine_empty"))

    ids = [item.id for item in manifest.manifest]
    if len(ids) != len(set(ids)):
        raise PackagingError(msg("manifest_duplicate_id"))
    by_id = {item.id: item for item in manifest.manifest}

    for itemref in manifest.spine:
        if itemref.idref not in by_id:
            raise PackagingError(msg("spine_unknown_item", idref=itemref.idref))
    for ref in [i.media_overlay for i in manifest.manifest] + [s.media_overlay for s in manifest.spine]:
        if ref is None:
            continue
        target = by_id.get(ref)
        if target is None or target.media_type != SMIL_MEDIA_TYPE:
            raise PackagingError(msg("media_overlay_unknown", ref=ref))
