from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class ClothingRecommendation:
    outfit: str
    description: str
    model_name: str


# (exclusive upper bound in Celsius, recommendation); the last band catches the rest
_BANDS: Tuple[Tuple[float, ClothingRecommendation], ...] = (
    (5.0, ClothingRecommendation("冬季全套", "今天很冷，建议穿羽绒服、围巾、帽子和保暖靴子", "character_winter")),
    (10.0, ClothingRecommendation("厚外套", "天气较冷，建议穿厚外套、毛衣和长裤", "character_coat")),
    (15.0, ClothingRecommendation("轻便外套", "温度适中偏凉，建议穿夹克或轻便外套", "character_jacket")),
    (20.0, ClothingRecommendation("长袖衣服", "天气舒适，建议穿长袖衬衫或薄毛衣", "character_longsleeve")),
    (25.0, ClothingRecommendation("短袖", "天气温暖，建议穿短袖T恤和轻便裤子", "character_tshirt")),
    (30.0, ClothingRecommendation("清凉装扮", "天气炎热，建议穿轻薄透气的衣服", "character_summer")),
)
_HOTTEST = ClothingRecommendation("防晒装备", "非常热，请注意防晒，穿轻薄透气的衣物", "character_sunprotect")


def recommend_clothing(temperature_c: Optional[float]) -> Optional[ClothingRecommendation]:
    if temperature_c is None:
        return None
    # 5 °C itself still counts as "very cold"
    if temperature_c <= _BANDS[0][0]:
        return _BANDS[0][1]
    for upper, recommendation in _BANDS[1:]:
        if temperature_c < upper:
            return recommendation
    return _HOTTEST


__all__ = ["ClothingRecommendation", "recommend_clothing"]
