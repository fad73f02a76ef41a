"""Tests for cinegen.chapter_structure — structured beats and freeform phases."""

import pytest

from cinegen.chapter_structure import (
    CLIMAX_CHAPTER_NUMBER,
    HOOK_CHAPTER_NUMBER,
    STRUCTURED_BEATS,
    freeform_guidance,
    freeform_phase,
    structured_beat,
    structured_chapter_type,
)


class TestStructuredBeats:
    def test_eighteen_contiguous_beats(self):
        assert [beat.number for beat in STRUCTURED_BEATS] == list(range(1, 19))

    def test_hook_is_short_opening(self):
        beat = structured_beat(HOOK_CHAPTER_NUMBER)
        assert beat.chapter_type == "hook"
        assert beat.title == "The Hook"
        assert beat.target_words == 150

    def test_climax_position(self):
        assert structured_chapter_type(CLIMAX_CHAPTER_NUMBER) == "climax"

    def test_chapter_types_are_unique(self):
        types = [beat.chapter_type for beat in STRUCTURED_BEATS]
        assert len(set(types)) == len(types)

    @pytest.mark.parametrize("number", [0, 19, -1])
    def test_out_of_range_raises(self, number):
        with pytest.raises(ValueError):
            structured_beat(number)


class TestFreeformPhase:
    def test_first_and_last(self):
        assert freeform_phase(1, 5) == "opening"
        assert freeform_phase(5, 5) == "final"

    def test_single_chapter_film_is_opening(self):
        assert freeform_phase(1, 1) == "opening"

    def test_middle_positions(self):
        phases = [freeform_phase(number, 10) for number in range(2, 10)]
        assert phases[0] == "early"
        assert "middle" in phases
        assert phases[-1] == "late"

    def test_guidance_mentions_phase(self):
        assert "final chapter" in freeform_guidance(3, 3)
