"""
座標変換モジュール。

ソースページ座標系（左下原点、Y上向き、単位ポイント）のバウンディングボックスを、
ページ画像に重ねる矩形（左上原点、Y下向き）へ変換します。
変換結果はパーセント表記（スタイル出力用）とピクセル表記の2種類です。
"""
from dataclasses import dataclass

from core.config import MIN_BOX_SIZE
from parsers.page_source import BoundingBox


@dataclass(frozen=True)
class RenderRect:
    """左上原点の描画矩形。単位はパーセントまたはピクセル。"""
    left: float
    top: float
    width: float
    height: float

    def to_percent_style(self, font_size_percent: float | None = None) -> str:
        """
        絶対配置用のインラインスタイル文字列を返す。

        値はパーセント表記の矩形であることを前提とする。
        """
        style = (
            f"position: absolute; left: {self.left:.4f}%; top: {self.top:.4f}%; "
            f"width: {self.width:.4f}%; height: {self.height:.4f}%;"
        )
        if font_size_percent is not None:
            style += f" font-size: {font_size_percent:.2f}%;"
        return style


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _non_degenerate(box: BoundingBox) -> BoundingBox:
    """幅・高さが0以下のボックスを1単位の大きさに補正する。"""
    width = box.width if box.width > 0 else MIN_BOX_SIZE
    height = box.height if box.height > 0 else MIN_BOX_SIZE
    if width == box.width and height == box.height:
        return box
    return BoundingBox(x=box.x, y=box.y, width=width, height=height)


def resolve_top(box: BoundingBox, page_h: float) -> float:
    """
    ボックス上端の、ページ上端からの距離（ソース単位）を求める。

    Parameters
    ----------
    box : BoundingBox
        ソース座標系のボックス。
    page_h : float
        ページの高さ（ソース単位）。

    Returns
    -------
    float
        ページ上端からの距離。

    Notes
    -----
    上流の抽出器によってはY座標を上端基準で返すことがあるため、
    次の順に判定する。
        1. page_h - (y + h) が [0, page_h] に収まればそれを使う（下端基準）
        2. y が [0, page_h] に収まればそれを使う（上端基準とみなす）
        3. どちらも範囲外なら 1 の値を範囲内に丸める
    この判定は経験則であり、下端基準の値が偶然範囲内に入る上端基準の入力は
    区別できない。
    """
    top_from_bottom = page_h - (box.y + box.height)
    if 0 <= top_from_bottom <= page_h:
        return top_from_bottom
    if 0 <= box.y <= page_h:
        return box.y
    return _clamp(top_from_bottom, 0.0, page_h)


def transform_to_percent(box: BoundingBox, page_w: float, page_h: float) -> RenderRect:
    """
    ボックスをページに対するパーセント表記の矩形へ変換する。

    left, top は [0, 100] に、width は 100 - left 以下に、
    height は 100 - top 以下に丸める。

    Raises
    ------
    ValueError
        ページ寸法が0以下の場合。
    """
    if page_w <= 0 or page_h <= 0:
        raise ValueError(f"invalid page size: {page_w}x{page_h}")
    box = _non_degenerate(box)
    top = resolve_top(box, page_h)

    left_pct = _clamp(box.x / page_w * 100.0, 0.0, 100.0)
    top_pct = _clamp(top / page_h * 100.0, 0.0, 100.0)
    width_pct = _clamp(box.width / page_w * 100.0, 0.0, 100.0 - left_pct)
    height_pct = _clamp(box.height / page_h * 100.0, 0.0, 100.0 - top_pct)
    return RenderRect(left=left_pct, top=top_pct, width=width_pct, height=height_pct)


def transform_to_pixels(
    box: BoundingBox,
    page_w: float,
    page_h: float,
    render_w: float,
    render_h: float,
) -> RenderRect:
    """
    ボックスをレンダリング画像上のピクセル矩形へ変換する。

    X軸とY軸はそれぞれ独立した倍率（render_w / page_w, render_h / page_h）で
    拡大縮小する。結果はレンダリング領域内に収まるよう丸める。

    Raises
    ------
    ValueError
        ページ寸法またはレンダリング寸法が0以下の場合。
    """
    if page_w <= 0 or page_h <= 0 or render_w <= 0 or render_h <= 0:
        raise ValueError(f"invalid size: page {page_w}x{page_h}, render {render_w}x{render_h}")
    box = _non_degenerate(box)
    top = resolve_top(box, page_h)
    scale_x = render_w / page_w
    scale_y = render_h / page_h

    left = _clamp(box.x * scale_x, 0.0, render_w)
    top_px = _clamp(top * scale_y, 0.0, render_h)
    width = _clamp(box.width * scale_x, 0.0, render_w - left)
    height = _clamp(box.height * scale_y, 0.0, render_h - top_px)
    return RenderRect(left=left, top=top_px, width=width, height=height)


def font_size_percent(font_size: float | None, page_h: float) -> float | None:
    """フォントサイズをページ高さに対するパーセントで返す。指定がなければNone。"""
    if not font_size or font_size <= 0 or page_h <= 0:
        return None
    return font_size / page_h * 100.0
