from __future__ import annotations

from dataclasses import dataclass

from document_analyzer.modules.extraction.schemas import ExpenseCategory

VENDOR_MATCH_POINTS = 5
KEYWORD_MATCH_POINTS = 1


@dataclass(frozen=True)
class CategoryRule:
    category: ExpenseCategory
    keywords: tuple[str, ...]
    vendors: tuple[str, ...] = ()


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        category=ExpenseCategory.FOOD_AND_DINING,
        keywords=(
            "restaurant", "cafe", "coffee", "burger", "pizza", "grill",
            "diner", "food", "meal", "breakfast", "lunch", "dinner",
        ),
        vendors=(
            "mcdonalds", "starbucks", "subway", "chipotle",
            "panera", "wendys", "dominos", "taco bell",
        ),
    ),
    CategoryRule(
        category=ExpenseCategory.TRAVEL,
        keywords=(
            "hotel", "motel", "flight", "airline", "car rental", "taxi", "uber",
            "lyft", "train", "bus", "travel", "transportation", "airport",
        ),
        vendors=(
            "marriott", "hilton", "airbnb", "expedia", "delta",
            "united", "southwest", "hertz", "enterprise",
        ),
    ),
    CategoryRule(
        category=ExpenseCategory.OFFICE_SUPPLIES,
        keywords=(
            "office", "supplies", "paper", "ink", "toner",
            "printer", "pen", "stapler", "notebook", "stationery",
        ),
        vendors=("staples", "office depot", "officemax", "amazon"),
    ),
    CategoryRule(
        category=ExpenseCategory.UTILITIES,
        keywords=(
            "electric", "water", "gas", "utility", "power", "energy",
            "bill", "phone", "internet", "broadband", "cable",
        ),
        vendors=("at&t", "verizon", "comcast", "xfinity", "sprint", "t-mobile"),
    ),
    CategoryRule(
        category=ExpenseCategory.TECHNOLOGY,
        keywords=(
            "computer", "laptop", "monitor", "software", "hardware",
            "electronics", "camera", "phone", "tablet", "subscription",
        ),
        vendors=(
            "apple", "microsoft", "samsung", "google", "best buy",
            "newegg", "adobe", "dropbox", "zoom",
        ),
    ),
    CategoryRule(
        category=ExpenseCategory.ENTERTAINMENT,
        keywords=(
            "movie", "theater", "concert", "ticket", "show",
            "entertainment", "music", "streaming", "netflix", "spotify",
        ),
        vendors=("amc", "netflix", "spotify", "hulu", "disney+", "hbo", "ticketmaster"),
    ),
    CategoryRule(
        category=ExpenseCategory.MEDICAL,
        keywords=(
            "doctor", "pharmacy", "clinic", "health", "medical",
            "medicine", "prescription", "hospital", "dental", "healthcare",
        ),
        vendors=("walgreens", "cvs", "rite aid", "express scripts"),
    ),
)


def _vendor_matches(rule_vendor: str, vendor: str) -> bool:
    # Containment runs both ways so "mcdonald" and "mcdonalds corp" both hit "mcdonalds".
    return rule_vendor in vendor or vendor in rule_vendor


def score_categories(
    text: str, vendor: str, *, rules: tuple[CategoryRule, ...] = CATEGORY_RULES
) -> dict[ExpenseCategory, int]:
    """Additive keyword/vendor score per category, in ExpenseCategory declaration order."""
    lower_text = (text or "").lower()
    lower_vendor = (vendor or "").lower()

    scores = {category: 0 for category in ExpenseCategory}
    for rule in rules:
        for rule_vendor in rule.vendors:
            if _vendor_matches(rule_vendor, lower_vendor):
                scores[rule.category] += VENDOR_MATCH_POINTS
        for keyword in rule.keywords:
            if keyword in lower_text:
                scores[rule.category] += KEYWORD_MATCH_POINTS
    return scores


def categorize_expense(text: str, vendor: str) -> ExpenseCategory:
    scores = score_categories(text, vendor)

    best_category = ExpenseCategory.OTHER
    best_score = 0
    for category, score in scores.items():
        if score > best_score:
            best_score = score
            best_category = category
    return best_category
