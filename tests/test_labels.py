from devvault.services.repository import ItemType
from devvault.workspace.labels import TabLabels, labels_for_locale


def test_english_placeholders() -> None:
    labels = TabLabels()

    assert labels.new_tab() == "New tab"
    assert labels.draft_title(ItemType.SNIPPET) == "New snippet"
    assert labels.draft_title("link") == "New link"
    assert labels.draft_title(None) == "New item"
    assert labels.draft_title("spreadsheet") == "New item"


def test_russian_placeholders() -> None:
    labels = labels_for_locale("RU")

    assert labels.locale == "ru"
    assert labels.documentation() == "Документация"
    assert labels.draft_title("config") == "Новый конфиг"
    assert labels.get("close.confirm_body", title="nginx") == "Во вкладке «nginx» есть несохраненные изменения."


def test_unknown_locale_and_keys_fall_back() -> None:
    labels = labels_for_locale("fr")

    assert labels.locale == "en"
    assert labels.title_required() == "Title cannot be empty."
    assert labels.get("no.such.key") == "no.such.key"
    assert TabLabels("fr").new_tab() == "New tab"
