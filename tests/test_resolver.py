from __future__ import annotations

import os
from pathlib import Path

import pytest

from agent_hub.agents.models import AgentCategory, Workflow, WorkflowIntent
from agent_hub.execution.pointers import LatestPointer
from agent_hub.execution.resolver import (
    DISCOVERY_TABLE,
    INJECTION_TABLE,
    InjectionSource,
    apply_language_parameters,
    inject_argument,
    split_capture_translation,
)
from agent_hub.pipeline.degradation import (
    CAPTURE_MARKER_MISSING,
    INJECTION_SOURCE_MISSING,
    MAPPED_OUTPUT_MISSING,
)


def _touch(path: Path, text: str = "x", mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


CAPTURE_TEXT = "ORIGINAL TEXT (en):\nPhotosynthesis\n\nTRANSLATED TEXT (es):\nFotosintesis\nLuz solar\n"


@pytest.mark.unit
def test_dispatch_tables_cover_every_category_and_intent():
    assert set(INJECTION_TABLE) == set(AgentCategory)
    for row in INJECTION_TABLE.values():
        assert set(row) == set(WorkflowIntent)
    assert set(DISCOVERY_TABLE) == set(AgentCategory)

    for kind in (AgentCategory.VOCABULARY, AgentCategory.SUMMARIZATION, AgentCategory.DIAGRAM):
        assert INJECTION_TABLE[kind][WorkflowIntent.AUDIO] is InjectionSource.TRANSLATED_TRANSCRIPT
        assert INJECTION_TABLE[kind][WorkflowIntent.WHITEBOARD] is InjectionSource.CAPTURE_TRANSLATION
        assert INJECTION_TABLE[kind][WorkflowIntent.NONE] is None
    assert all(v is None for v in INJECTION_TABLE[AgentCategory.SPEECH_TRANSLATOR].values())


@pytest.mark.unit
def test_inject_argument_is_idempotent():
    args = ("run", "--input", "old_transcript.txt")
    once = inject_argument(args, "/data/translated_transcript.txt", "transcript")
    twice = inject_argument(once, "/data/translated_transcript.txt", "transcript")

    assert once == ("run", "--input", "/data/translated_transcript.txt")
    assert twice == once


@pytest.mark.unit
def test_language_parameters_replace_existing_flags():
    args = ("--target-language", "fr", "x")
    out = apply_language_parameters(args, AgentCategory.VOCABULARY, source_language="en", target_language="es")

    assert out == ("x", "--source-language", "en", "--target-language", "es")
    again = apply_language_parameters(out, AgentCategory.VOCABULARY, source_language="en", target_language="es")
    assert again == out

    untouched = apply_language_parameters(args, AgentCategory.SUMMARIZATION, target_language="es")
    assert untouched == args


@pytest.mark.unit
def test_audio_injection_for_later_steps(make_agent, resolver, agent_data):
    transcript = _touch(agent_data / "Recording" / "translated_transcript.txt", "hola")
    speech = make_agent("Speech Translator", kind=AgentCategory.SPEECH_TRANSLATOR)
    vocab = make_agent("Vocab", kind=AgentCategory.VOCABULARY, arguments=["run", "stale_transcript.txt"])
    wf = Workflow(name="w", agents=[speech, vocab])

    step = resolver.build_step_arguments(vocab, 1, wf)

    assert step.arguments == ("run", str(transcript.resolve()))
    assert step.injected == str(transcript.resolve())
    assert step.degradations == ()

    again = resolver.build_step_arguments(vocab.with_arguments(step.arguments), 1, wf)
    assert again.arguments == step.arguments


@pytest.mark.unit
def test_first_step_gets_no_file_injection(make_agent, resolver, agent_data):
    _touch(agent_data / "Recording" / "translated_transcript.txt")
    vocab = make_agent("Vocab", kind=AgentCategory.VOCABULARY, arguments=["run"])
    wf = Workflow(name="w", agents=[vocab], intent=WorkflowIntent.AUDIO, target_language="es")

    step = resolver.build_step_arguments(vocab, 0, wf)

    assert step.arguments == ("run", "--target-language", "es")
    assert step.injected is None


@pytest.mark.unit
def test_missing_transcript_leaves_arguments_and_records_degradation(make_agent, resolver):
    speech = make_agent("Speech Translator", kind=AgentCategory.SPEECH_TRANSLATOR)
    summary = make_agent("Notes", kind=AgentCategory.SUMMARIZATION, arguments=["run"])
    wf = Workflow(name="w", agents=[speech, summary])

    step = resolver.build_step_arguments(summary, 1, wf)

    assert step.arguments == ("run",)
    assert [d["reason_code"] for d in step.degradations] == [INJECTION_SOURCE_MISSING]
    assert step.degradations[0]["stage"] == "Notes"


@pytest.mark.unit
def test_whiteboard_injection_uses_newest_capture(make_agent, resolver, agent_data):
    captures = agent_data / "Captures"
    _touch(captures / "capture_old.txt", "TRANSLATED TEXT (es):\nviejo\n", mtime=1_000_000)
    _touch(captures / "capture_new.txt", CAPTURE_TEXT, mtime=2_000_000)
    board = make_agent("Board", kind=AgentCategory.BOARD_CAPTURE)
    diagram = make_agent("Diagram", kind=AgentCategory.DIAGRAM, arguments=["old_translated_text.txt"])
    wf = Workflow(name="w", agents=[board, diagram])

    step = resolver.build_step_arguments(diagram, 1, wf)

    derived = captures / "translated_text.txt"
    assert step.arguments == (str(derived.resolve()),)
    assert derived.read_text(encoding="utf-8") == "Fotosintesis\nLuz solar\n"


@pytest.mark.unit
def test_capture_without_marker_is_a_degradation(make_agent, resolver, agent_data):
    _touch(agent_data / "Captures" / "capture_1.txt", "ORIGINAL TEXT (en):\nonly original\n")
    board = make_agent("Board", kind=AgentCategory.BOARD_CAPTURE)
    vocab = make_agent("Vocab", kind=AgentCategory.VOCABULARY, arguments=["run"])
    wf = Workflow(name="w", agents=[board, vocab])

    step = resolver.build_step_arguments(vocab, 1, wf)

    assert step.arguments == ("run",)
    assert [d["reason_code"] for d in step.degradations] == [CAPTURE_MARKER_MISSING]


@pytest.mark.unit
def test_split_capture_translation(tmp_path):
    capture = _touch(tmp_path / "capture_1.txt", CAPTURE_TEXT)
    dest = tmp_path / "out" / "translated_text.txt"

    assert split_capture_translation(capture, dest) == dest
    assert dest.read_text(encoding="utf-8") == "Fotosintesis\nLuz solar\n"

    plain = _touch(tmp_path / "capture_2.txt", "nothing here\n")
    assert split_capture_translation(plain, tmp_path / "other.txt") is None
    assert not (tmp_path / "other.txt").exists()


@pytest.mark.unit
def test_output_mapping_appends_existing_file_once(make_agent, resolver):
    a = make_agent("AgentA")
    b = make_agent("AgentB", arguments=["--go"])
    out = _touch(Path(a.working_directory) / "out.json", "{}")

    first = resolver.apply_output_mappings(a, ["out.json"], b)
    second = resolver.apply_output_mappings(a, ["out.json"], b.with_arguments(first.arguments))

    assert first.arguments == ("--go", str(out.resolve()))
    assert second.arguments == first.arguments
    assert first.degradations == ()


@pytest.mark.unit
def test_output_mapping_missing_file_leaves_arguments(make_agent, resolver):
    a = make_agent("AgentA")
    b = make_agent("AgentB", arguments=["--go"])

    outcome = resolver.apply_output_mappings(a, ["out.json"], b)

    assert outcome.arguments == ("--go",)
    assert outcome.forwarded == ()
    assert [d["reason_code"] for d in outcome.degradations] == [MAPPED_OUTPUT_MISSING]


@pytest.mark.unit
def test_output_pattern_glob_picks_newest(make_agent, resolver):
    a = make_agent("AgentA")
    wd = Path(a.working_directory)
    _touch(wd / "results" / "run_1.json", mtime=1_000_000)
    newest = _touch(wd / "results" / "run_2.json", mtime=3_000_000)
    _touch(wd / "results" / "run_3.json", mtime=2_000_000)

    assert resolver.resolve_output_pattern(a, "results/run_*.json") == newest.resolve()


@pytest.mark.unit
def test_discovery_finds_transcripts(make_agent, resolver, agent_data):
    recognized = _touch(agent_data / "Recording" / "recognized_transcript.txt")
    translated = _touch(agent_data / "Recording" / "translated_transcript.txt")
    speech = make_agent("Speech Translator", kind=AgentCategory.SPEECH_TRANSLATOR)

    found = resolver.discover_outputs(speech)

    assert found == [str(recognized.resolve()), str(translated.resolve())]


@pytest.mark.unit
def test_discovery_caps_matches_per_pattern(make_agent, resolver, agent_data):
    for i in range(5):
        _touch(agent_data / "Vocabulary" / f"lecture{i}_flashcards.json", mtime=1_000_000 + i)
    vocab = make_agent("Vocab", kind=AgentCategory.VOCABULARY)

    found = [Path(p).name for p in resolver.discover_outputs(vocab)]

    assert found == ["lecture4_flashcards.json", "lecture3_flashcards.json", "lecture2_flashcards.json"]


@pytest.mark.unit
def test_summary_discovery_refreshes_latest_pointer(make_agent, resolver, agent_data):
    summary_dir = agent_data / "Summary"
    _touch(summary_dir / "summary_2024-01-01_10-00-00.json", '{"Summary": "old"}', mtime=1_000_000)
    _touch(summary_dir / "summary_2024-01-02_10-00-00.json", '{"Summary": "new"}', mtime=2_000_000)
    notes = make_agent("Notes", kind=AgentCategory.SUMMARIZATION)

    found = [Path(p).name for p in resolver.discover_outputs(notes)]

    pointer = summary_dir / "summary_JSON.json"
    assert pointer.read_text(encoding="utf-8") == '{"Summary": "new"}'
    assert found[0] == "summary_JSON.json"
    assert "summary_2024-01-02_10-00-00.json" in found


@pytest.mark.unit
def test_generic_agents_have_no_discovery(make_agent, resolver):
    assert resolver.discover_outputs(make_agent("Tool")) == []


@pytest.mark.unit
def test_latest_pointer_staleness_and_cleanup(tmp_path):
    _touch(tmp_path / "summary_a.json", "a", mtime=1_000_000)
    pointer = LatestPointer(tmp_path / "summary_JSON.json", (tmp_path,), "summary_*.json")

    assert pointer.newest().name == "summary_a.json"
    assert pointer.is_stale()
    assert pointer.refresh() == tmp_path / "summary_JSON.json"
    assert not pointer.is_stale()

    _touch(tmp_path / "summary_b.json", "b", mtime=2_000_000)
    assert pointer.is_stale()
    pointer.refresh()
    assert (tmp_path / "summary_JSON.json").read_text() == "b"

    assert pointer.clear()
    assert not pointer.clear()
    assert (tmp_path / "summary_b.json").exists()


@pytest.mark.unit
def test_latest_pointer_without_candidates(tmp_path):
    pointer = LatestPointer(tmp_path / "summary_JSON.json", (tmp_path / "missing",), "summary_*.json")
    assert pointer.newest() is None
    assert not pointer.is_stale()
    assert pointer.refresh() is None


@pytest.mark.unit
def test_latest_pointer_picks_newest_across_directories(tmp_path):
    shared = tmp_path / "AgentData" / "Summary"
    outputs = tmp_path / "Notes" / "data" / "outputs"
    _touch(shared / "summary_old.json", "old", mtime=1_000_000)
    _touch(outputs / "summary_new.json", "new", mtime=2_000_000)
    pointer = LatestPointer(shared / "summary_JSON.json", (shared, outputs, tmp_path / "missing"), "summary_*.json")

    assert pointer.newest() == outputs / "summary_new.json"
    assert pointer.refresh() == shared / "summary_JSON.json"
    assert (shared / "summary_JSON.json").read_text(encoding="utf-8") == "new"
    assert not pointer.is_stale()


@pytest.mark.unit
def test_split_capture_ignores_ocr_lines_that_look_like_the_marker(tmp_path):
    capture = _touch(
        tmp_path / "capture_1.txt",
        "ORIGINAL TEXT (en):\nTranslated text exercise\nTRANSLATED TEXT notes\nPhotosynthesis\n\n"
        "TRANSLATED TEXT (es):\nFotosintesis\n",
    )
    dest = tmp_path / "translated_text.txt"

    assert split_capture_translation(capture, dest) == dest
    assert dest.read_text(encoding="utf-8") == "Fotosintesis\n"

    lowercase_only = _touch(tmp_path / "capture_2.txt", "ORIGINAL TEXT (en):\ntranslated text (es):\nhola\n")
    assert split_capture_translation(lowercase_only, tmp_path / "other.txt") is None
