"""Tests for epub.py -- OPF metadata extraction."""

import zipfile

import pytest

from audiobook_organizer.epub import extract_epub_metadata
from audiobook_organizer.errors import MetadataInvalid, MetadataMissing

CONTAINER = """<?xml version="1.0"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


def _opf(metadata: str) -> str:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:opf="http://www.idpf.org/2007/opf">
    {metadata}
  </metadata>
</package>
"""


def _write_epub(path, opf: str, opf_name: str = "OEBPS/content.opf", container: bool = True):
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        if container:
            zf.writestr("META-INF/container.xml", CONTAINER)
        zf.writestr(opf_name, opf)
    return path


class TestExtractEpubMetadata:
    def test_basic_fields(self, tmp_path):
        epub = _write_epub(tmp_path / "book.epub", _opf(
            "<dc:title>The Final Empire</dc:title>"
            "<dc:creator>Brandon Sanderson</dc:creator>"
            "<dc:publisher>Tor</dc:publisher>"
            "<dc:language>en</dc:language>"
            "<dc:identifier>isbn-1</dc:identifier>"
            "<dc:subject>Fantasy</dc:subject><dc:subject>Epic</dc:subject>"
        ))
        raw = extract_epub_metadata(epub)
        assert raw["title"] == "The Final Empire"
        assert raw["authors"] == ["Brandon Sanderson"]
        assert raw["publisher"] == "Tor"
        assert raw["language"] == "en"
        assert raw["identifier"] == "isbn-1"
        assert raw["subjects"] == ["Fantasy", "Epic"]

    def test_multiple_creators(self, tmp_path):
        epub = _write_epub(tmp_path / "b.epub", _opf(
            "<dc:title>Good Omens</dc:title>"
            "<dc:creator>Terry Pratchett</dc:creator><dc:creator>Neil Gaiman</dc:creator>"
        ))
        assert extract_epub_metadata(epub)["authors"] == ["Terry Pratchett", "Neil Gaiman"]

    def test_epub3_collection_series(self, tmp_path):
        epub = _write_epub(tmp_path / "b.epub", _opf(
            "<dc:title>Well of Ascension</dc:title>"
            '<meta property="belongs-to-collection" id="c01">Mistborn</meta>'
            '<meta refines="#c01" property="group-position">2</meta>'
        ))
        raw = extract_epub_metadata(epub)
        assert raw["series"] == "Mistborn #2"
        assert raw["series_index"] == 2

    def test_calibre_series(self, tmp_path):
        epub = _write_epub(tmp_path / "b.epub", _opf(
            "<dc:title>Novella</dc:title>"
            '<meta name="calibre:series" content="Cosmere"/>'
            '<meta name="calibre:series_index" content="2.5"/>'
        ))
        raw = extract_epub_metadata(epub)
        assert raw["series"] == "Cosmere #2.5"
        assert raw["series_index"] == "2.5"

    def test_series_without_index(self, tmp_path):
        epub = _write_epub(tmp_path / "b.epub", _opf(
            "<dc:title>T</dc:title>"
            '<meta name="calibre:series" content="Standalone Saga"/>'
        ))
        raw = extract_epub_metadata(epub)
        assert raw["series"] == "Standalone Saga"
        assert "series_index" not in raw

    def test_opf_found_without_container(self, tmp_path):
        epub = _write_epub(
            tmp_path / "b.epub", _opf("<dc:title>Loose</dc:title>"),
            opf_name="package.opf", container=False,
        )
        assert extract_epub_metadata(epub)["title"] == "Loose"

    def test_not_a_zip(self, tmp_path):
        bad = tmp_path / "bad.epub"
        bad.write_text("plain text")
        with pytest.raises(MetadataInvalid):
            extract_epub_metadata(bad)

    def test_no_opf(self, tmp_path):
        path = tmp_path / "empty.epub"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("mimetype", "application/epub+zip")
        with pytest.raises(MetadataMissing):
            extract_epub_metadata(path)

    def test_broken_opf(self, tmp_path):
        epub = _write_epub(tmp_path / "b.epub", "<package><metadata>")
        with pytest.raises(MetadataInvalid):
            extract_epub_metadata(epub)
