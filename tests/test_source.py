import asyncio
import json

import pytest
from pydantic import ValidationError

from vpm_repository.data.source import SourceError, load_source, parse_source
from vpm_repository.domain.models import Author


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_json_source(tmp_path):
    path = write_json(
        tmp_path / "source.json",
        {
            "name": "Test",
            "id": "test.repo",
            "url": "https://example.com",
            "author": "Alice",
            "githubRepos": ["acme/widget", "acme/gadget"],
        },
    )

    source = asyncio.run(load_source(path))

    assert source.name == "Test"
    assert source.id == "test.repo"
    assert source.author == Author(name="Alice")
    assert source.repositories == ["acme/widget", "acme/gadget"]


def test_author_object_keys_are_case_insensitive():
    source = parse_source(
        json.dumps(
            {
                "name": "Test",
                "id": "test.repo",
                "url": "https://example.com",
                "author": {"Name": "Alice", "URL": "https://alice.dev", "email": "a@alice.dev"},
            }
        )
    )

    assert source.author == Author(name="Alice", url="https://alice.dev")
    assert source.repositories == []


def test_load_yaml_source(tmp_path):
    path = tmp_path / "source.yml"
    path.write_text(
        "name: Test\n"
        "id: test.repo\n"
        "url: https://example.com\n"
        "author:\n"
        "  name: Alice\n"
        "  url: https://alice.dev\n"
        "githubRepos:\n"
        "  - acme/widget\n",
        encoding="utf-8",
    )

    source = asyncio.run(load_source(path))

    assert source.author.url == "https://alice.dev"
    assert source.repositories == ["acme/widget"]


def test_missing_file_is_fatal(tmp_path):
    with pytest.raises(SourceError, match="Cannot read source"):
        asyncio.run(load_source(tmp_path / "nope.json"))


def test_load_source_is_awaitable_and_strips_bom(tmp_path):
    path = tmp_path / "source.json"
    path.write_bytes(b"\xef\xbb\xbf" + json.dumps({"name": "Test", "id": "t", "url": "https://t"}).encode("utf-8"))

    source = asyncio.run(load_source(path))

    assert source.name == "Test"


def test_undecodable_source_is_fatal(tmp_path):
    path = tmp_path / "source.json"
    path.write_bytes(b"\xff\xfe\x00garbage")

    with pytest.raises(SourceError, match="Cannot read source"):
        asyncio.run(load_source(path))


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[]",
        json.dumps({"id": "test.repo", "url": "https://example.com"}),
        json.dumps({"name": "T", "id": "t", "url": "https://t", "githubRepos": "acme/widget"}),
    ],
)
def test_invalid_source_is_fatal(text):
    with pytest.raises(SourceError):
        parse_source(text)


def test_source_is_immutable():
    source = parse_source(json.dumps({"name": "T", "id": "t", "url": "https://t"}))
    with pytest.raises(ValidationError):
        source.name = "Other"
