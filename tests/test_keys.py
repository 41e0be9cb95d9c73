"""Tests for storage key generation."""

import re
from datetime import datetime, UTC

from pixvault.lib.keys import MAX_NAME_LENGTH, clean_name, generate_key

KEY_PATTERN = re.compile(r"^images/\d{4}/\d{2}/cat_\d+_[a-z0-9]{6}\.webp$")


class TestCleanName:
    def test_strips_extension(self):
        assert clean_name("cat.jpg") == "cat"

    def test_only_last_extension_removed(self):
        assert clean_name("archive.tar.gz") == "archive_tar"

    def test_replaces_unsafe_characters(self):
        assert clean_name("my cat (1).png") == "my_cat__1_"

    def test_keeps_cjk_and_hyphen(self):
        assert clean_name("猫-照片.png") == "猫-照片"

    def test_non_ascii_letters_replaced(self):
        assert clean_name("café.png") == "caf_"

    def test_truncates_long_names(self):
        assert len(clean_name("a" * 200 + ".png")) == MAX_NAME_LENGTH

    def test_drops_directories(self):
        assert clean_name("some/dir/cat.png") == "cat"

    def test_empty_name_gets_placeholder(self):
        assert clean_name("") == "image"


class TestGenerateKey:
    def test_matches_expected_layout(self):
        assert KEY_PATTERN.match(generate_key("cat.jpg"))

    def test_uses_given_partition(self):
        key = generate_key("cat.jpg", now=datetime(2025, 3, 9, tzinfo=UTC))
        assert key.startswith("images/2025/03/cat_")

    def test_keys_are_unique_in_tight_loop(self):
        keys = {generate_key("cat.jpg") for _ in range(500)}
        assert len(keys) == 500
