"""Tests for cagateway.services.subject_parser.SubjectParser."""

from __future__ import annotations

import pytest

from cagateway.services.subject_parser import SubjectParser


@pytest.fixture()
def parser():
    return SubjectParser()


class TestKeyedForm:
    def test_query_string(self, parser):
        subject = parser.parse("ca=rootca&subject[CN]=example.com&subject[O]=Acme")
        assert list(subject) == [("CN", "example.com"), ("O", "Acme")]

    def test_url_encoded_brackets(self, parser):
        subject = parser.parse("subject%5BCN%5D=example.com")
        assert list(subject) == [("CN", "example.com")]

    def test_bytes(self, parser):
        assert list(parser.parse(b"subject[CN]=x")) == [("CN", "x")]

    def test_pairs(self, parser):
        subject = parser.parse([("subject[C]", "US"), ("profile", "server"), ("subject[CN]", "x")])
        assert list(subject) == [("C", "US"), ("CN", "x")]

    def test_blank_values_skipped(self, parser):
        subject = parser.parse("subject[CN]=x&subject[O]=&subject[OU]=%20")
        assert list(subject) == [("CN", "x")]

    def test_other_field(self, parser):
        subject = parser.parse("issuer[CN]=a&subject[CN]=b", field="issuer")
        assert list(subject) == [("CN", "a")]


class TestIndexedForm:
    def test_repeated_types(self, parser):
        raw = (
            "subject[0][key]=CN&subject[0][value]=example.com"
            "&subject[1][key]=OU&subject[1][value]=one"
            "&subject[2][key]=OU&subject[2][value]=two"
        )
        assert list(parser.parse(raw)) == [("CN", "example.com"), ("OU", "one"), ("OU", "two")]

    def test_order_of_first_appearance(self, parser):
        raw = "subject[5][key]=O&subject[1][key]=CN&subject[1][value]=x&subject[5][value]=Acme"
        assert list(parser.parse(raw)) == [("O", "Acme"), ("CN", "x")]

    def test_half_filled_slot_skipped(self, parser):
        raw = "subject[0][key]=CN&subject[1][key]=O&subject[1][value]=Acme"
        assert list(parser.parse(raw)) == [("O", "Acme")]

    def test_bare_numeric_key_ignored(self, parser):
        assert parser.parse("subject[0]=oops").empty


class TestWholeDn:
    def test_slash_form(self, parser):
        subject = parser.parse([("subject", "/C=US/O=Acme/CN=example.com")])
        assert list(subject) == [("C", "US"), ("O", "Acme"), ("CN", "example.com")]

    def test_comma_form_reversed(self, parser):
        subject = parser.parse([("subject", "CN=example.com,O=Acme,C=US")])
        assert list(subject) == [("C", "US"), ("O", "Acme"), ("CN", "example.com")]

    def test_escaped_separators(self, parser):
        subject = parser.parse([("subject", "CN=Doe\\, John,O=Acme")])
        assert list(subject) == [("O", "Acme"), ("CN", "Doe, John")]
        subject = parser.parse([("subject", "/CN=a\\/b")])
        assert list(subject) == [("CN", "a/b")]

    def test_blank(self, parser):
        assert parser.parse([("subject", "   ")]).empty

    def test_parts_without_equals_dropped(self, parser):
        assert list(parser.parse([("subject", "/junk/CN=x")])) == [("CN", "x")]


class TestEmpty:
    def test_no_subject(self, parser):
        assert parser.parse("ca=rootca&profile=server").empty
