from pathlib import Path

import pytest

from flashdeck.parser import find_deck, load_deck_directory, load_deck_file
from flashdeck.yaml_models import DeckFileError, DeckLoaderConfig, sanitize_text


def write_deck(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadDeckFile:
    def test_valid_deck(self, deck_yaml_dir: Path):
        deck = load_deck_file(deck_yaml_dir / "general.yaml")

        assert deck.category_id == "general"
        assert deck.name == "General Knowledge"
        assert [c.front for c in deck.cards] == [
            "What is the capital of France?",
            "What is the largest planet?",
            "How many legs does a spider have?",
        ]
        assert [c.favorite for c in deck.cards] == [False, True, False]
        # numeric answers are read as text
        assert deck.cards[2].back == "8"
        assert deck.source_file == deck_yaml_dir / "general.yaml"

    def test_html_is_stripped(self, tmp_path: Path):
        path = write_deck(
            tmp_path,
            "markup.yaml",
            "id: markup\n"
            "name: Markup\n"
            "cards:\n"
            "  - q: '<b>Bold</b> question <script>x</script>'\n"
            "    a: 'Fish & chips < 5'\n",
        )

        deck = load_deck_file(path)

        assert deck.cards[0].front == "Bold question x"
        assert deck.cards[0].back == "Fish & chips < 5"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(DeckFileError, match="File not found"):
            load_deck_file(tmp_path / "absent.yaml")

    def test_invalid_yaml_syntax(self, tmp_path: Path):
        path = write_deck(tmp_path, "broken.yaml", "id: [unclosed\n")
        with pytest.raises(DeckFileError, match="Invalid YAML syntax"):
            load_deck_file(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path):
        path = write_deck(tmp_path, "list.yaml", "- q: a\n  a: b\n")
        with pytest.raises(DeckFileError, match="must be a dictionary"):
            load_deck_file(path)

    def test_id_must_be_kebab_case(self, tmp_path: Path):
        path = write_deck(
            tmp_path,
            "bad_id.yaml",
            "id: General Knowledge\nname: G\ncards:\n  - q: Q\n    a: A\n",
        )
        with pytest.raises(DeckFileError, match="field 'id'"):
            load_deck_file(path)

    def test_card_error_reports_index_and_question(self, tmp_path: Path):
        path = write_deck(
            tmp_path,
            "missing_answer.yaml",
            "id: science\n"
            "name: Science\n"
            "cards:\n"
            "  - q: What is H2O?\n"
            "    a: Water\n"
            "  - q: What is NaCl?\n",
        )

        with pytest.raises(DeckFileError) as exc_info:
            load_deck_file(path)

        error = exc_info.value
        assert error.card_index == 1
        assert error.card_question_snippet == "What is NaCl?"
        assert "Card Index: 1" in str(error)
        assert "missing_answer.yaml" in str(error)

    def test_unknown_card_field_is_rejected(self, tmp_path: Path):
        path = write_deck(
            tmp_path,
            "extra.yaml",
            "id: extra\nname: Extra\ncards:\n  - q: Q\n    a: A\n    hint: H\n",
        )
        with pytest.raises(DeckFileError, match="cards.0.hint"):
            load_deck_file(path)

    def test_empty_deck_is_rejected(self, tmp_path: Path):
        path = write_deck(tmp_path, "empty.yaml", "id: empty\nname: Empty\ncards: []\n")
        with pytest.raises(DeckFileError, match="field 'cards'"):
            load_deck_file(path)

    def test_text_empty_after_stripping_is_rejected(self, tmp_path: Path):
        path = write_deck(
            tmp_path,
            "blank.yaml",
            "id: blank\nname: Blank\ncards:\n  - q: '<br>'\n    a: A\n",
        )
        with pytest.raises(DeckFileError, match="empty after removing markup"):
            load_deck_file(path)


class TestLoadDeckDirectory:
    def test_loads_sorted_decks_and_collects_errors(self, deck_yaml_dir: Path):
        write_deck(
            deck_yaml_dir,
            "animals.yml",
            "id: animals\nname: Animals\ncards:\n  - q: Fastest land animal?\n"
            "    a: Cheetah\n",
        )
        write_deck(deck_yaml_dir, "broken.yaml", "id: broken\nname: Broken\n")
        write_deck(deck_yaml_dir, "notes.txt", "not a deck")

        decks, errors = load_deck_directory(
            DeckLoaderConfig(source_directory=deck_yaml_dir)
        )

        assert [d.category_id for d in decks] == ["animals", "general"]
        assert len(errors) == 1
        assert errors[0].file_path.name == "broken.yaml"

    def test_duplicate_ids_are_reported(self, deck_yaml_dir: Path):
        write_deck(
            deck_yaml_dir,
            "zz_general_copy.yaml",
            "id: general\nname: Copy\ncards:\n  - q: Q\n    a: A\n",
        )

        decks, errors = load_deck_directory(
            DeckLoaderConfig(source_directory=deck_yaml_dir)
        )

        assert [d.name for d in decks] == ["General Knowledge"]
        assert "Duplicate deck id 'general'" in errors[0].message

    def test_fail_fast_raises_first_error(self, deck_yaml_dir: Path):
        write_deck(deck_yaml_dir, "broken.yaml", "id: broken\n")

        with pytest.raises(DeckFileError):
            load_deck_directory(
                DeckLoaderConfig(source_directory=deck_yaml_dir, fail_fast=True)
            )

    def test_missing_directory(self, tmp_path: Path):
        decks, errors = load_deck_directory(
            DeckLoaderConfig(source_directory=tmp_path / "nowhere")
        )

        assert decks == []
        assert "does not exist" in errors[0].message

    def test_find_deck(self, deck_yaml_dir: Path):
        config = DeckLoaderConfig(source_directory=deck_yaml_dir)

        deck, errors = find_deck(config, "general")

        assert deck.name == "General Knowledge"
        assert errors == []
        with pytest.raises(DeckFileError, match="No deck with id 'history'"):
            find_deck(config, "history")


def test_sanitize_text_keeps_plain_text():
    assert sanitize_text("  Who wrote 'Hamlet'?  ") == "Who wrote 'Hamlet'?"
    assert sanitize_text("<i>E</i> = mc<sup>2</sup>") == "E = mc2"


@pytest.mark.parametrize(
    "text",
    [
        "Is x<y and y>z true?",
        "Is 3<x and x>2?",
        "1 < 2 > 0",
        "Use a<<b to shift left",
    ],
)
def test_sanitize_text_keeps_literal_angle_brackets(text):
    assert sanitize_text(text) == text


def test_sanitize_text_strips_known_tags_next_to_comparisons():
    assert sanitize_text("<b>x<y</b> holds") == "x<y holds"
