"""
用户资料实体（匹配用的用户目录）
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from domain.common.exceptions import DomainValidationException
from domain.message.entity import validate_identity


def normalize_interests(interests: Optional[Iterable[str]]) -> List[str]:
    """去空白、小写、去重并排序，保证比较与存储稳定"""
    cleaned: Set[str] = set()
    for item in interests or []:
        if not isinstance(item, str):
            continue
        tag = item.strip().lower()
        if tag:
            cleaned.add(tag)
    return sorted(cleaned)


@dataclass
class Profile:
    """用户资料实体"""

    user_id: str
    location: str
    interests: List[str] = field(default_factory=list)
    display_name: Optional[str] = None

    def __post_init__(self):
        validate_identity(self.user_id, "user_id")
        if not isinstance(self.location, str) or not self.location.strip():
            raise DomainValidationException("location must not be empty", field="location")
        self.location = self.location.strip()
        self.interests = normalize_interests(self.interests)

    def shared_interests(self, other: "Profile") -> List[str]:
        return sorted(set(self.interests) & set(other.interests))

    def same_location(self, other: "Profile") -> bool:
        return self.location.casefold() == other.location.casefold()

    def matches(self, other: "Profile") -> bool:
        """业务规则：同城且至少一个共同兴趣；不与自己匹配"""
        if other.user_id == self.user_id:
            return False
        return self.same_location(other) and bool(self.shared_interests(other))
