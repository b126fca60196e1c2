import enum
from typing import NamedTuple, Tuple


class CategoryGroup(str, enum.Enum):
    """Top-level topic groups for economic news.

    Declaration order matters: classification ties resolve to the group
    declared first.
    """

    RATE = "RATE"
    FX = "FX"
    STOCK = "STOCK"
    REALESTATE = "REALESTATE"
    MACRO = "MACRO"
    POLICY = "POLICY"

    @property
    def display_name(self) -> str:
        return GROUP_META[self].display_name

    @property
    def title_template(self) -> str:
        return GROUP_META[self].title_template

    @property
    def keywords(self) -> Tuple[str, ...]:
        return GROUP_META[self].keywords


class GroupMeta(NamedTuple):
    display_name: str
    title_template: str
    keywords: Tuple[str, ...]


GROUP_META = {
    CategoryGroup.RATE: GroupMeta(
        "금리/통화정책", "금리 관련 이슈",
        ("금리", "기준금리", "연준", "fed", "파월", "한은", "동결", "인상", "인하", "bp"),
    ),
    CategoryGroup.FX: GroupMeta(
        "환율/외환", "환율 관련 이슈",
        ("환율", "달러", "원화", "엔화", "유로", "외환", "강세", "약세"),
    ),
    CategoryGroup.STOCK: GroupMeta(
        "증시/주식", "증시 관련 이슈",
        ("코스피", "코스닥", "주가", "증시", "상승", "하락", "급락", "급등", "시총"),
    ),
    CategoryGroup.REALESTATE: GroupMeta(
        "부동산", "부동산 이슈",
        ("부동산", "아파트", "전세", "월세", "분양", "청약", "주택", "재건축", "재개발"),
    ),
    CategoryGroup.MACRO: GroupMeta(
        "거시지표", "거시지표 이슈",
        ("물가", "cpi", "ppi", "고용", "실업", "gdp", "수출", "수입", "무역수지", "경기"),
    ),
    CategoryGroup.POLICY: GroupMeta(
        "정책/제도", "정책 이슈",
        ("세금", "관세", "규제", "지원", "법안", "정책", "대책", "추경", "예산", "금융위", "금감원", "기재부"),
    ),
}
