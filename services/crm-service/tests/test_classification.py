import pytest
from app.services.classification import classify, derive_priority


def test_urgent_outage_is_a_top_priority_complaint():
    category = classify("Сервис", "СРОЧНО не работает сервис")
    assert category == "complaint"
    assert derive_priority(category, "Сервис", "СРОЧНО не работает сервис") == 5


def test_purchase_question_is_sales():
    text = "Хочу купить подписку, какая цена?"
    category = classify("Новая заявка", text)
    assert category == "sales"
    assert derive_priority(category, "Новая заявка", text) == 3


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Подскажите, где найти документы", "question"),
        ("Прошу перезвонить мне завтра", "request"),
        ("Ошибка при оплате картой", "sales"),  # sales is checked before technical
        ("Выдает ошибку в личном кабинете", "technical"),
        ("Спасибо за помощь", "other"),
        ("The app shows an ERROR on login", "technical"),
    ],
)
def test_first_matching_category_wins(text, expected):
    assert classify(None, text) == expected


def test_classification_reads_title_and_description():
    assert classify("Жалоба", "Курьер опоздал") == "complaint"


@pytest.mark.parametrize(
    "category, text, expected",
    [
        ("technical", "Critical failure in export", 5),
        ("technical", "This is important for us", 3),
        ("request", "Перезвоните", 3),
        ("question", "Когда откроется офис", 1),
        ("other", "Спасибо", 1),
        ("technical", "Сбой синхронизации", 0),
    ],
)
def test_priority_rules(category, text, expected):
    assert derive_priority(category, None, text) == expected
