"""Keyword heuristics for ticket category and priority."""

from typing import Optional, Sequence, Tuple

COMPLAINT = "complaint"
SALES = "sales"
QUESTION = "question"
REQUEST = "request"
TECHNICAL = "technical"
OTHER = "other"

# Checked in this order; the first category with a matching keyword wins.
CATEGORY_KEYWORDS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    (COMPLAINT, (
        "жалоба", "жалуюсь", "недоволен", "недовольна", "не работает", "ужасно",
        "безобразие", "верните деньги", "complaint", "not working", "terrible", "refund",
    )),
    (SALES, (
        "купить", "покупк", "цена", "цену", "стоимость", "сколько стоит", "тариф", "подписк",
        "оплат", "buy", "price", "purchase", "subscription", "pricing",
    )),
    (QUESTION, (
        "вопрос", "подскажите", "как ", "почему", "когда", "где ", "?",
        "question", "how ", "why ", "what ", "when ",
    )),
    (REQUEST, (
        "прошу", "просьба", "заявка", "нужно", "необходимо", "хочу",
        "request", "please", "need",
    )),
    (TECHNICAL, (
        "ошибка", "ошибку", "баг", "сбой", "не загружается", "пароль", "войти",
        "error", "bug", "crash", "login", "password",
    )),
)

URGENT_KEYWORDS = ("urgent", "critical", "not working", "срочно", "критично", "не работает")
IMPORTANT_KEYWORDS = ("important", "важно")

PRIORITY_URGENT = 5
PRIORITY_IMPORTANT = 3
PRIORITY_LOW = 1
PRIORITY_NONE = 0


def _text(title: Optional[str], description: Optional[str]) -> str:
    return f"{title or ''} {description or ''}".lower()


def _contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def classify(title: Optional[str], description: Optional[str]) -> str:
    text = _text(title, description)
    for category, keywords in CATEGORY_KEYWORDS:
        if _contains_any(text, keywords):
            return category
    return OTHER


def derive_priority(category: Optional[str], title: Optional[str], description: Optional[str]) -> int:
    text = _text(title, description)
    if category == COMPLAINT or _contains_any(text, URGENT_KEYWORDS):
        return PRIORITY_URGENT
    if category in (SALES, REQUEST) or _contains_any(text, IMPORTANT_KEYWORDS):
        return PRIORITY_IMPORTANT
    if category in (QUESTION, OTHER):
        return PRIORITY_LOW
    return PRIORITY_NONE
