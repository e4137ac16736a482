"""
gazetteer.py
~~~~~~~~~~~~
Hand-curated list of cities, districts and landmarks with coordinates and
lower-case aliases (pinyin, initials, English names, common misspellings).
The first ``HOT_CITY_COUNT`` entries double as the "hot cities" list, so keep
the most requested cities at the top.
"""
from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from .entities import GazetteerEntry, PlaceCandidate

_Row = Tuple[str, float, float, Sequence[str]]

_ROWS: Tuple[_Row, ...] = (
    # ─── Hot cities ───────────────────────────────────────────────────
    ("上海市", 31.2304, 121.4737, ("shanghai", "sh", "shanghaishi", "hu")),
    ("北京市", 39.9042, 116.4074, ("beijing", "bj", "beijingshi", "peking")),
    ("广州市", 23.1291, 113.2644, ("guangzhou", "gz", "canton")),
    ("深圳市", 22.5431, 114.0579, ("shenzhen", "sz", "shenzen")),
    ("成都市", 30.5728, 104.0668, ("chengdu", "cd")),
    ("杭州市", 30.2741, 120.1551, ("hangzhou", "hz")),
    ("武汉市", 30.5928, 114.3055, ("wuhan", "wh")),
    ("西安市", 34.3416, 108.9398, ("xian", "xi'an", "xa")),
    # ─── Other major cities ───────────────────────────────────────────
    ("重庆市", 29.4316, 106.9123, ("chongqing", "cq", "chungking")),
    ("南京市", 32.0603, 118.7969, ("nanjing", "nj", "nanking")),
    ("天津市", 39.0842, 117.2009, ("tianjin", "tj")),
    ("苏州市", 31.2989, 120.5853, ("suzhou", "szs")),
    ("厦门市", 24.4798, 118.0894, ("xiamen", "xm", "amoy")),
    ("青岛市", 36.0671, 120.3826, ("qingdao", "qd", "tsingtao")),
    ("大连市", 38.9140, 121.6147, ("dalian", "dl")),
    ("长沙市", 28.2282, 112.9388, ("changsha", "cs")),
    ("郑州市", 34.7466, 113.6254, ("zhengzhou", "zz")),
    ("沈阳市", 41.8057, 123.4315, ("shenyang", "sy")),
    ("哈尔滨市", 45.8038, 126.5349, ("haerbin", "harbin", "heb")),
    ("昆明市", 25.0389, 102.7183, ("kunming", "km")),
    ("济南市", 36.6512, 117.1201, ("jinan", "jn")),
    ("合肥市", 31.8206, 117.2272, ("hefei", "hf")),
    ("福州市", 26.0745, 119.2965, ("fuzhou", "fz")),
    ("南昌市", 28.6820, 115.8579, ("nanchang", "nc")),
    ("南宁市", 22.8170, 108.3665, ("nanning", "nn")),
    ("贵阳市", 26.6470, 106.6302, ("guiyang", "gy")),
    ("兰州市", 36.0611, 103.8343, ("lanzhou", "lz")),
    ("乌鲁木齐市", 43.8256, 87.6168, ("wulumuqi", "urumqi", "wlmq")),
    ("拉萨市", 29.6500, 91.1000, ("lasa", "lhasa", "ls")),
    ("海口市", 20.0440, 110.1999, ("haikou", "hk")),
    ("三亚市", 18.2528, 109.5119, ("sanya", "sy")),
    ("宁波市", 29.8683, 121.5440, ("ningbo", "nb")),
    ("无锡市", 31.4912, 120.3119, ("wuxi", "wx")),
    ("桂林市", 25.2736, 110.2900, ("guilin", "gl")),
    ("香港", 22.3193, 114.1694, ("xianggang", "hong kong", "hongkong", "hk")),
    ("澳门", 22.1987, 113.5439, ("aomen", "macau", "macao")),
    ("台北市", 25.0330, 121.5654, ("taibei", "taipei", "tb")),
    # ─── Districts ────────────────────────────────────────────────────
    ("浦东新区", 31.2215, 121.5447, ("pudong", "pudongxinqu", "pd")),
    ("徐汇区", 31.1886, 121.4365, ("xuhui", "xh")),
    ("朝阳区", 39.9219, 116.4436, ("chaoyang", "cy")),
    ("海淀区", 39.9561, 116.3103, ("haidian", "hd")),
    ("天河区", 23.1247, 113.3612, ("tianhe", "th")),
    ("南山区", 22.5333, 113.9304, ("nanshan", "ns")),
    ("西湖区", 30.2597, 120.1300, ("xihu", "west lake district")),
    # ─── Landmarks ────────────────────────────────────────────────────
    ("外滩", 31.2400, 121.4900, ("waitan", "the bund", "bund")),
    ("故宫", 39.9163, 116.3972, ("gugong", "forbidden city")),
    ("西湖", 30.2425, 120.1500, ("xihu", "west lake")),
    ("兵马俑", 34.3853, 109.2785, ("bingmayong", "terracotta army")),
    ("黄山", 30.1333, 118.1667, ("huangshan", "yellow mountain")),
    # ─── International ────────────────────────────────────────────────
    ("东京", 35.6762, 139.6503, ("dongjing", "tokyo")),
    ("首尔", 37.5665, 126.9780, ("shouer", "seoul")),
    ("新加坡", 1.3521, 103.8198, ("xinjiapo", "singapore")),
    ("曼谷", 13.7563, 100.5018, ("mangu", "bangkok")),
    ("伦敦", 51.5074, -0.1278, ("lundun", "london")),
    ("巴黎", 48.8566, 2.3522, ("bali", "paris")),
    ("纽约", 40.7128, -74.0060, ("niuyue", "new york", "nyc")),
    ("旧金山", 37.7749, -122.4194, ("jiujinshan", "san francisco", "sf")),
    ("悉尼", -33.8688, 151.2093, ("xini", "sydney")),
    ("雷克雅未克", 64.1466, -21.9426, ("leikeyaweike", "reykjavik")),
)


def build_entries(rows: Iterable[_Row]) -> List[GazetteerEntry]:
    entries: List[GazetteerEntry] = []
    for name, latitude, longitude, aliases in rows:
        entries.append(
            GazetteerEntry(
                place=PlaceCandidate(name=name, latitude=latitude, longitude=longitude),
                aliases=frozenset(alias.strip().lower() for alias in aliases if alias.strip()),
            )
        )
    return entries


DEFAULT_GAZETTEER: Tuple[GazetteerEntry, ...] = tuple(build_entries(_ROWS))


def known_cities() -> List[PlaceCandidate]:
    """Cities usable as nearest-neighbour fallbacks (landmarks and districts excluded)."""
    return [
        entry.place
        for entry in DEFAULT_GAZETTEER
        if entry.name.endswith("市") or entry.name in {"香港", "澳门"}
    ]


def find_entry(name: str) -> GazetteerEntry | None:
    wanted = name.strip().casefold()
    for entry in DEFAULT_GAZETTEER:
        if entry.name.casefold() == wanted or wanted in entry.aliases:
            return entry
    return None


__all__ = ["DEFAULT_GAZETTEER", "build_entries", "find_entry", "known_cities"]
