"""HTML presentation of JSON results."""

import pytest

from mesh_inbox.api.presentation import escape_html, extract_embedded, html_wrap


def test_escape_html():
    assert escape_html('<a href="x">&</a>') == "&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;"


def test_wrapped_document_embeds_recoverable_json():
    data = {"text": '<script>alert("x")</script> & more', "n": [1, None, True], "uni": "héllo"}
    doc = html_wrap("Poll", data)

    assert doc.startswith("<!DOCTYPE html>")
    assert '<pre id="newton-packet-out">' in doc
    assert "<script>" not in doc
    assert extract_embedded(doc) == data


def test_title_is_escaped():
    doc = html_wrap("<b>", {})
    assert "<title>&lt;b&gt;</title>" in doc


def test_extract_without_packet_element():
    with pytest.raises(ValueError):
        extract_embedded("<html><body>nothing</body></html>")
