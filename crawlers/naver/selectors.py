"""CSS selectors for the Naver News page layouts.

Each list is ordered by preference; the parser takes the first selector that
yields non-blank text. Naver ships hashed class names (``__qh8GV``) on the
newer sports/entertainment pages, so attribute-substring selectors follow the
exact ones as a fallback.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class ArticleFormat(Enum):
    GENERAL = "general"
    ENTERTAINMENT = "entertainment"
    SPORTS = "sports"
    CARD = "card"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class LayoutSelectors:
    title: List[str]
    content: List[str]
    date: List[str] = field(default_factory=list)
    publisher: List[str] = field(default_factory=list)
    author: List[str] = field(default_factory=list)
    captions: List[str] = field(default_factory=list)


GENERAL = LayoutSelectors(
    title=[
        "#title_area span",
        ".media_end_head_title",
        "h2.media_end_head_headline",
    ],
    content=[
        "#dic_area",
        "#articleBodyContents",
        "article#dic_area",
    ],
    date=[
        ".media_end_head_info_datestamp_time",
        "._ARTICLE_DATE_TIME",
        "span.media_end_head_info_datestamp_time",
    ],
    publisher=[
        ".media_end_head_top_logo img",
        ".press_logo img",
        "a.media_end_head_top_logo_img img",
    ],
    author=[
        ".byline",
        ".journalist_name",
        "span.byline_s",
    ],
)

ENTERTAINMENT = LayoutSelectors(
    title=[
        ".end_tit",
        "h2.end_tit",
        ".article_tit",
        "h2.ArticleHead_article_title__qh8GV",
        ".ArticleHead_article_title__qh8GV",
        "h2[class*='article_title']",
    ],
    content=[
        ".article_body",
        "#articeBody",
        "div.end_body_wrp",
        "article.Article_comp_news_article__XIpve",
        "article[class*='_article_body']",
        "div._article_content",
        "article#comp_news_article",
    ],
    date=[
        ".article_info .author em",
        ".info_date",
        "span.author em",
        ".DateInfo_info_item__3yQPs em.date",
        ".DateInfo_article_head_date_info__CS6Gx em.date",
        "div[class*='DateInfo'] em.date",
    ],
    publisher=[
        ".JournalistCard_press_name__s3Eup",
        "em[class*='press_name']",
        ".press_name",
    ],
    author=[
        ".JournalistCard_name__0ZSAO",
        "em[class*='name']",
        ".journalist_name",
    ],
)

SPORTS = LayoutSelectors(
    title=[
        ".news_headline .title",
        "h4.title",
        ".NewsEndMain_article_title__j5ND9",
        "h2.ArticleHead_article_title__qh8GV",
        ".ArticleHead_article_title__qh8GV",
        "h2[class*='article_title']",
    ],
    content=[
        ".news_end",
        "#newsEndContents",
        "div.NewsEndMain_article_body__D5MUB",
        "article.Article_comp_news_article__XIpve",
        "article[class*='_article_body']",
        "div._article_content",
        "article#comp_news_article",
    ],
    date=[
        ".info span",
        ".news_date",
        "em.date",
        ".DateInfo_info_item__3yQPs em.date",
        ".DateInfo_article_head_date_info__CS6Gx em.date",
        "div[class*='DateInfo'] em.date",
    ],
    publisher=[
        ".JournalistCard_press_name__s3Eup",
        "em[class*='press_name']",
        ".press_name",
    ],
    author=[
        ".JournalistCard_name__0ZSAO",
        "em[class*='name']",
        ".journalist_name",
    ],
)

CARD = LayoutSelectors(
    title=[
        "h2.end_tit",
        ".media_end_head_title",
        "h3.tit_view",
    ],
    content=[
        "div.end_ct_area",
        "div.card_area",
        "div.content_area",
    ],
    captions=[
        "em.img_desc",
        ".txt",
        "figcaption",
    ],
)

# Removed from article bodies before text extraction.
NOISE = [
    "em.img_desc",
    "div.link_news",
    ".end_photo_org",
    ".vod_player_wrap",
    "script",
    "style",
    "noscript",
    "iframe",
    ".ad_wrap",
    ".reporter_area",
    ".byline_wrap",
    ".copyright",
    ".source",
]

# Layout detection, checked in order.
FORMAT_MARKERS = [
    (ArticleFormat.GENERAL, "#dic_area"),
    (ArticleFormat.ENTERTAINMENT, ".article_body, div.end_body_wrp"),
    (ArticleFormat.SPORTS, ".news_end, div.NewsEndMain_article_body__D5MUB"),
    (ArticleFormat.SPORTS, "article.Article_comp_news_article__XIpve, article#comp_news_article"),
    (ArticleFormat.SPORTS, "h2[class*='ArticleHead_article_title']"),
    (ArticleFormat.CARD, "div.end_ct_area, div.card_area"),
]

LAYOUTS = {
    ArticleFormat.GENERAL: GENERAL,
    ArticleFormat.ENTERTAINMENT: ENTERTAINMENT,
    ArticleFormat.SPORTS: SPORTS,
    ArticleFormat.CARD: CARD,
}

DELETED_INDICATORS = [
    "삭제된 기사",
    "없는 기사",
    "서비스 되지 않는",
    "페이지를 찾을 수 없습니다",
    "삭제되었거나",
    "존재하지 않는 기사",
    "기사가 삭제, 수정, 이동되었거나",
]

ERROR_BLOCKS = [
    ".error_content",
    ".deleted_content",
    ".article_error",
    ".news_error",
    "#ct > .error_msg",
    ".err_wrap",
]

CONTENT_CONTAINERS = ["#dic_area", ".article_body", ".news_end", "article", "div.end_ct_area", "div.card_area"]
