"""Tests for cagateway.api.params: bracketed parameter normalization."""

from __future__ import annotations

import io

from flask import Flask, request

from cagateway.api.params import normalize_params, request_pairs


class TestNormalizeParams:
    def test_plain(self):
        assert normalize_params([("ca", "rootca"), ("serial", "1")]) == {"ca": "rootca", "serial": "1"}

    def test_last_plain_value_wins(self):
        assert normalize_params([("ca", "a"), ("ca", "b")]) == {"ca": "b"}

    def test_list_accumulates(self):
        params = normalize_params(
            [("extensions[dNSNames][]", "a"), ("extensions[dNSNames][]", "b")],
        )
        assert params == {"extensions": {"dNSNames": ["a", "b"]}}

    def test_nested_keys(self):
        params = normalize_params([("subject[CN]", "x"), ("subject[O]", "Acme")])
        assert params == {"subject": {"CN": "x", "O": "Acme"}}

    def test_indexed_entries(self):
        params = normalize_params(
            [
                ("subject[0][key]", "CN"),
                ("subject[0][value]", "x"),
                ("subject[1][key]", "O"),
            ],
        )
        assert params == {"subject": {"0": {"key": "CN", "value": "x"}, "1": {"key": "O"}}}

    def test_list_of_hashes(self):
        params = normalize_params(
            [("items[][k]", "a"), ("items[][v]", "1"), ("items[][k]", "b")],
        )
        assert params == {"items": [{"k": "a", "v": "1"}, {"k": "b"}]}

    def test_scalar_then_nested_replaces(self):
        params = normalize_params([("extensions", "junk"), ("extensions[dNSNames][]", "a")])
        assert params == {"extensions": {"dNSNames": ["a"]}}

    def test_malformed_key_kept_verbatim(self):
        assert normalize_params([("a]b", "1")]) == {"a]b": "1"}


class TestRequestPairs:
    def test_query_then_form_then_files(self):
        app = Flask("test_params")
        data = {
            "ca": "rootca",
            "csr": (io.BytesIO(b"-----BEGIN CERTIFICATE REQUEST-----"), "req.pem"),
        }
        with app.test_request_context(
            "/1/certificate/issue?profile=server",
            method="POST",
            data=data,
            content_type="multipart/form-data",
        ):
            pairs = request_pairs(request)
        assert pairs == [
            ("profile", "server"),
            ("ca", "rootca"),
            ("csr", "-----BEGIN CERTIFICATE REQUEST-----"),
        ]

    def test_binary_upload_becomes_base64(self):
        app = Flask("test_params")
        data = {"csr": (io.BytesIO(b"\x30\x82\xff"), "req.der")}
        with app.test_request_context(
            "/1/certificate/issue",
            method="POST",
            data=data,
            content_type="multipart/form-data",
        ):
            pairs = request_pairs(request)
        assert pairs == [("csr", "MIL/")]
