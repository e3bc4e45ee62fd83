#!/usr/bin/env python3
"""
Unit tests for the storage key codec
"""

import itertools

import pytest

from tilecache.exceptions import MalformedKey
from tilecache.keys import (
    SectionRef,
    decode_timestamp_key,
    encode_collapse_key,
    encode_consent_key,
    encode_content_key,
    encode_content_timestamp_key,
    encode_last_section_key,
    is_consent_key,
    is_content_timestamp_key,
    is_namespaced,
)


class TestEncoding:

    def test_literal_formats(self):
        assert encode_last_section_key(2, 5) == "mdl-course-2-user-5-lastSecId"
        assert encode_content_key(2, 3, 5) == "mdl-course-2-sec-3-user-5-content"
        assert encode_content_timestamp_key(2, 3, 5) == "mdl-course-2-sec-3-user-5-lastUpdated"
        assert encode_collapse_key(2, 5) == "mdl-course-2-user-5-collapsesec0"
        assert encode_consent_key(5) == "mdl-tiles-userPrefStorage-user-5"

    def test_digit_strings_accepted(self):
        assert encode_content_key("2", "3", "5") == encode_content_key(2, 3, 5)

    @pytest.mark.parametrize("bad", [-1, "1-2", "abc", "", True, 1.5])
    def test_invalid_identifiers_rejected(self, bad):
        with pytest.raises(ValueError):
            encode_content_key(bad, 1, 1)

    def test_all_keys_share_prefix(self):
        keys = [
            encode_last_section_key(1, 1),
            encode_content_key(1, 1, 1),
            encode_content_timestamp_key(1, 1, 1),
            encode_collapse_key(1, 1),
            encode_consent_key(1),
        ]
        assert all(is_namespaced(k) for k in keys)

    def test_distinct_tuples_distinct_keys(self):
        triples = list(itertools.product([0, 1, 11, 111], repeat=3))
        keys = {encode_content_timestamp_key(*t) for t in triples}
        assert len(keys) == len(triples)


class TestDecoding:

    @pytest.mark.parametrize("triple", [(0, 0, 0), (2, 3, 5), (12345, 67, 890)])
    def test_decode_recovers_triple(self, triple):
        ref = decode_timestamp_key(encode_content_timestamp_key(*triple))
        assert ref == SectionRef(*triple)

    @pytest.mark.parametrize("key", [
        "mdl-course-2-sec-3-user-5-content",
        "mdl-course-2-user-5-lastSecId",
        "mdl-course-x-sec-3-user-5-lastUpdated",
        "mdl-course-2-sec-3-lastUpdated",
        "other-course-2-sec-3-user-5-lastUpdated",
        "mdl-course-2-sec-3-user-5-lastUpdated\n",
        "mdl-course-012-sec-3-user-5-lastUpdated",
        "mdl-course-2-sec-00-user-5-lastUpdated",
    ])
    def test_malformed_keys_rejected(self, key):
        with pytest.raises(MalformedKey):
            decode_timestamp_key(key)

    def test_shape_check_is_prefix_and_suffix_only(self):
        assert is_content_timestamp_key("mdl-course-2-sec-3-user-5-lastUpdated")
        assert is_content_timestamp_key("mdl-junk-lastUpdated")
        assert not is_content_timestamp_key("mdl-course-2-sec-3-user-5-content")
        assert not is_content_timestamp_key("app-lastUpdated")

    def test_consent_key_detection(self):
        assert is_consent_key(encode_consent_key(9))
        assert not is_consent_key(encode_last_section_key(9, 9))
