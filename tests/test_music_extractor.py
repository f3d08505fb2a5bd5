"""Tests for result extraction."""
from soundtrack.music.extractor import extract_tracks, first_text, resolve_audio_url
from soundtrack.music.models import ResultTrack


class TestResolveAudioUrl:
    def test_prefers_final_audio_over_source(self):
        entry = {'audioUrl': 'https://cdn/final.mp3', 'sourceAudioUrl': 'https://cdn/source.mp3'}
        assert resolve_audio_url(entry) == 'https://cdn/final.mp3'

    def test_snake_case_and_url_fallbacks(self):
        assert resolve_audio_url({'audio_url': 'https://cdn/a.mp3'}) == 'https://cdn/a.mp3'
        assert resolve_audio_url({'url': 'https://cdn/b.mp3'}) == 'https://cdn/b.mp3'

    def test_blank_values_are_skipped(self):
        assert resolve_audio_url({'audioUrl': '  ', 'audio_url': 'https://cdn/c.mp3'}) == 'https://cdn/c.mp3'

    def test_bare_string_and_garbage(self):
        assert resolve_audio_url(' https://cdn/d.mp3 ') == 'https://cdn/d.mp3'
        assert resolve_audio_url('') is None
        assert resolve_audio_url(42) is None


class TestExtractTracks:
    def test_drops_entries_without_audio_and_keeps_order(self):
        raw = [
            {'id': 'a', 'audioUrl': 'https://cdn/a.mp3'},
            {'id': 'b', 'streamAudioUrl': 'https://cdn/b-stream'},
            {'id': 'c', 'audio_url': 'https://cdn/c.mp3'},
        ]
        tracks = extract_tracks(raw, 'job')
        assert [t.id for t in tracks] == ['a', 'c']

    def test_all_entries_without_audio_gives_empty_list(self):
        assert extract_tracks([{'id': 'x'}, {'title': 'y'}], 'job') == []
        assert extract_tracks((), 'job') == []

    def test_synthesised_ids_use_upstream_position(self):
        raw = [{'title': 'no url'}, {'audioUrl': 'https://cdn/1.mp3'}]
        tracks = extract_tracks(raw, 'job-9')
        assert tracks[0].id == 'job-9-1'

    def test_maps_optional_fields(self):
        raw = [{
            'id': 'a',
            'audioUrl': 'https://cdn/a.mp3',
            'imageUrl': 'https://cdn/a.jpg',
            'streamAudioUrl': 'https://cdn/a-stream',
            'title': 'Sunrise',
            'prompt': 'soft piano',
            'modelName': 'chirp-v4',
            'tags': 'ambient',
            'duration': '123.5',
        }]
        assert extract_tracks(raw, 'job') == [ResultTrack(
            id='a',
            audio_url='https://cdn/a.mp3',
            image_url='https://cdn/a.jpg',
            title='Sunrise',
            prompt='soft piano',
            stream_audio_url='https://cdn/a-stream',
            model_name='chirp-v4',
            tags='ambient',
            duration=123.5,
        )]

    def test_bare_url_entries(self):
        tracks = extract_tracks(['https://cdn/a.mp3', '', 'https://cdn/b.mp3'], 'job')
        assert [(t.id, t.audio_url) for t in tracks] == [
            ('job-0', 'https://cdn/a.mp3'),
            ('job-2', 'https://cdn/b.mp3'),
        ]

    def test_to_dict(self):
        track = extract_tracks([{'id': 'a', 'audioUrl': 'https://cdn/a.mp3'}], 'job')[0]
        assert track.to_dict()['audio_url'] == 'https://cdn/a.mp3'
        assert track.to_dict()['image_url'] is None


class TestFirstText:
    def test_first_non_blank_value_stripped(self):
        entry = {'a': '', 'b': 7, 'c': ' value ', 'd': 'later'}
        assert first_text(entry, ('a', 'b', 'c', 'd')) == 'value'

    def test_none_when_nothing_matches(self):
        assert first_text({'a': '  '}, ('a', 'missing')) is None
