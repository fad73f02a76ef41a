"""Tests for cinegen.story_framework — framework and preview generation."""

import json

import pytest

from cinegen.json_extract import AdapterParseError
from cinegen.story_framework import build_framework_prompt, generate_framework, generate_preview
from fakes import FRAMEWORK_PAYLOAD, FakeTextGenerator


class TestGenerateFramework:
    async def test_parses_framework(self):
        generator = FakeTextGenerator([json.dumps(FRAMEWORK_PAYLOAD)])
        framework = await generate_framework(generator, "film-1", "The Lighthouse Map")

        assert framework.film_id == "film-1"
        assert framework.hook == "The lamp goes dark the night the map appears."
        assert framework.genres == ("Mystery", "Drama")
        assert framework.characters[0].name == "Ada"
        assert 'titled "The Lighthouse Map"' in generator.calls[0][1]

    async def test_missing_premise_raises(self):
        generator = FakeTextGenerator([json.dumps({"hook": "H"})])
        with pytest.raises(AdapterParseError):
            await generate_framework(generator, "film-1", "Untitled")

    def test_prompt_asks_for_cast_visual_reference(self):
        assert '"actor"' in build_framework_prompt("X")


class TestGeneratePreview:
    async def test_parses_camel_case_hook(self):
        generator = FakeTextGenerator(
            ['Preview: {"genres": ["Sci-Fi"], "premise": "Stars fall.", "openingHook": "Silence, then light."}']
        )
        preview = await generate_preview(generator, "Falling Stars")

        assert preview.genres == ["Sci-Fi"]
        assert preview.premise == "Stars fall."
        assert preview.opening_hook == "Silence, then light."

    async def test_single_genre_string(self):
        generator = FakeTextGenerator([json.dumps({"genres": "Horror", "premise": "P", "opening_hook": "H"})])
        preview = await generate_preview(generator, "X")
        assert preview.genres == ["Horror"]
        assert preview.opening_hook == "H"

    async def test_prose_raises(self):
        generator = FakeTextGenerator(["It is a film about stars."])
        with pytest.raises(AdapterParseError):
            await generate_preview(generator, "X")
