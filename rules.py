from dataclasses import dataclass
from typing import Iterable


class RuleStoreUnavailable(RuntimeError):
    pass


def normalize_keyword(keyword: str) -> str:
    return (keyword or "").strip().lower()


@dataclass(frozen=True)
class KeywordRule:
    keyword: str
    category: str
    priority: int = 0


@dataclass(frozen=True)
class RuleSnapshot:
    """
    Immutable, ordered view of the category rules used by one categorization
    pass. Rules are ordered by priority (highest first) and then by keyword,
    so equal-priority rules are evaluated alphabetically.
    """

    rules: tuple[KeywordRule, ...] = ()

    @classmethod
    def build(cls, rules: Iterable[object]) -> "RuleSnapshot":
        normalized: list[KeywordRule] = []
        for rule in rules:
            keyword = normalize_keyword(getattr(rule, "keyword", ""))
            if not keyword:
                continue
            normalized.append(
                KeywordRule(
                    keyword=keyword,
                    category=str(getattr(rule, "category", "")).strip(),
                    priority=int(getattr(rule, "priority", 0) or 0),
                )
            )
        normalized.sort(key=lambda r: (-r.priority, r.keyword))
        return cls(tuple(normalized))

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def _rules(category: str, *pairs: tuple[str, int]) -> list[KeywordRule]:
    return [KeywordRule(keyword, category, priority) for keyword, priority in pairs]


DEFAULT_CATEGORY_RULES: tuple[KeywordRule, ...] = tuple(
    _rules(
        "Food & Dining",
        ("zomato", 10), ("swiggy", 10), ("restaurant", 5), ("cafe", 5),
        ("coffee", 5), ("pizza", 5), ("burger", 5), ("food", 3), ("dining", 3),
        ("mcdonald", 8), ("kfc", 8), ("dominos", 8), ("starbucks", 8),
    )
    + _rules(
        "Transport",
        ("uber", 10), ("ola", 10), ("rapido", 10), ("taxi", 5), ("cab", 5),
        ("metro", 5), ("bus", 5), ("train", 5), ("fuel", 5), ("petrol", 5),
        ("diesel", 5), ("parking", 5), ("toll", 5),
    )
    + _rules(
        "Shopping",
        ("amazon", 10), ("flipkart", 10), ("myntra", 10), ("ajio", 10),
        ("shopping", 3), ("mall", 5), ("store", 3), ("retail", 3),
    )
    + _rules(
        "Groceries",
        ("bigbasket", 10), ("grofers", 10), ("blinkit", 10), ("zepto", 10),
        ("grocery", 8), ("supermarket", 8), ("dmart", 10), ("reliance fresh", 10),
        ("more", 5),
    )
    + _rules(
        "Entertainment",
        ("netflix", 10), ("amazon prime", 10), ("hotstar", 10), ("spotify", 10),
        ("youtube", 10), ("movie", 5), ("cinema", 5), ("pvr", 10), ("inox", 10),
        ("bookmyshow", 10), ("game", 3),
    )
    + _rules(
        "Utilities",
        ("electricity", 10), ("water", 8), ("gas", 8), ("internet", 8),
        ("broadband", 8), ("mobile", 5), ("phone", 5), ("airtel", 10),
        ("jio", 10), ("vodafone", 10), ("bsnl", 10),
    )
    + _rules(
        "Healthcare",
        ("hospital", 10), ("doctor", 10), ("pharmacy", 10), ("medical", 8),
        ("medicine", 8), ("clinic", 10), ("apollo", 10), ("medplus", 10),
        ("1mg", 10), ("pharmeasy", 10),
    )
    + _rules(
        "Education",
        ("school", 10), ("college", 10), ("university", 10), ("course", 8),
        ("tuition", 10), ("book", 5), ("udemy", 10), ("coursera", 10),
        ("byju", 10),
    )
    + _rules(
        "Insurance",
        ("insurance", 10), ("premium", 5), ("policy", 5), ("lic", 10),
        ("hdfc life", 10), ("icici prudential", 10),
    )
    + _rules(
        "Investment",
        ("mutual fund", 10), ("sip", 10), ("stock", 8), ("zerodha", 10),
        ("groww", 10), ("upstox", 10), ("investment", 8),
    )
    + _rules("Rent", ("rent", 10), ("lease", 10), ("housing", 5))
    + _rules(
        "Income",
        ("salary", 10), ("income", 8), ("payment received", 8), ("credit", 3),
        ("deposit", 5),
    )
    + _rules(
        "Banking",
        ("atm", 10), ("withdrawal", 8), ("transfer", 5), ("bank charges", 10),
        ("service charge", 8),
    )
    + _rules(
        "Gifts & Donations", ("gift", 8), ("donation", 8), ("charity", 8)
    )
)
