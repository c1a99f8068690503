# rt_intel/image_selector.py
"""
Lead image heuristic for rendered news pages.

The scraper hands over the raw geometry of every <img> on the page together
with the rect of the first <h1>. Small images and avatar/logo style sources are
dropped, then the survivors are ranked in two regimes:

* inside the proximity band around the headline, the closer image wins;
* outside the band, the larger image wins.

An in-band image always ranks above an out-of-band one. Remaining ties keep
DOM order because the sort is stable.
"""
import math
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

DEFAULT_DENYLIST: Tuple[str, ...] = ("avatar", "icon", "logo", "author", "profile", "user")


@dataclass(frozen=True)
class SelectorSettings:
    min_width: float = 200
    min_height: float = 150
    proximity_band: float = 800
    denylist: Tuple[str, ...] = DEFAULT_DENYLIST

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SelectorSettings":
        return cls(
            min_width=config.get('IMAGE_MIN_WIDTH', cls.min_width),
            min_height=config.get('IMAGE_MIN_HEIGHT', cls.min_height),
            proximity_band=config.get('IMAGE_PROXIMITY_BAND', cls.proximity_band),
            denylist=tuple(config.get('IMAGE_DENYLIST', DEFAULT_DENYLIST)),
        )


@dataclass(frozen=True)
class CandidateImage:
    source_ref: int
    src: str
    width: float
    height: float
    distance: float = math.inf

    @property
    def area(self) -> float:
        return self.width * self.height


def is_eligible(src: str, width: float, height: float, settings: SelectorSettings) -> bool:
    if width < settings.min_width or height < settings.min_height:
        return False
    if not src:
        return False
    return not any(token in src for token in settings.denylist)


def headline_distance(image: Mapping[str, Any], headline: Optional[Mapping[str, Any]]) -> float:
    """Vertical distance between the centers of the image and the headline."""
    if not headline:
        return math.inf
    image_center = float(image.get("top", 0)) + float(image.get("height", 0)) / 2
    headline_center = float(headline.get("top", 0)) + float(headline.get("height", 0)) / 2
    return abs(image_center - headline_center)


def filter_candidates(images: Iterable[Mapping[str, Any]],
                      headline: Optional[Mapping[str, Any]] = None,
                      settings: Optional[SelectorSettings] = None) -> List[CandidateImage]:
    settings = settings or SelectorSettings()
    candidates = []
    for position, image in enumerate(images):
        src = (image.get("src") or "").strip()
        width = float(image.get("width") or 0)
        height = float(image.get("height") or 0)
        if not is_eligible(src, width, height, settings):
            continue
        candidates.append(CandidateImage(
            source_ref=int(image.get("index", position)),
            src=src,
            width=width,
            height=height,
            distance=headline_distance(image, headline),
        ))
    return candidates


def compare_candidates(a: CandidateImage, b: CandidateImage, proximity_band: float = 800) -> int:
    """Negative when ``a`` ranks above ``b``."""
    a_near = a.distance < proximity_band
    b_near = b.distance < proximity_band
    if a_near and b_near:
        return (a.distance > b.distance) - (a.distance < b.distance)
    if a_near != b_near:
        return -1 if a_near else 1
    return (b.area > a.area) - (b.area < a.area)


def rank_candidates(candidates: Iterable[CandidateImage],
                    settings: Optional[SelectorSettings] = None) -> List[CandidateImage]:
    settings = settings or SelectorSettings()
    band = settings.proximity_band
    return sorted(candidates, key=cmp_to_key(lambda a, b: compare_candidates(a, b, band)))


def select_best_image(images: Iterable[Dict[str, Any]],
                      headline: Optional[Mapping[str, Any]] = None,
                      settings: Optional[SelectorSettings] = None) -> Optional[CandidateImage]:
    """Return the most plausible lead image, or None when nothing qualifies."""
    ranked = rank_candidates(filter_candidates(images, headline, settings), settings)
    return ranked[0] if ranked else None
