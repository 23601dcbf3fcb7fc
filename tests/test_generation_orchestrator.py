import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
from conftest import ScriptedClient, make_settings
from core.errors import ExhaustionError, FailureKind, NetworkError
from core.llm_interface import GenerationClient
from core.usage import TokenUsage
from models import ArtifactType, GenerationRequest
from orchestration.generation_orchestrator import GenerationOrchestrator
from orchestration.models import Outcome, RawResponse

PARAGRAPH = ("Alpha beta gamma delta. " * 12).strip()


def _source(paragraphs: int) -> str:
    return "\n\n".join(PARAGRAPH for _ in range(paragraphs))


def _cards(prefix: str, count: int) -> str:
    return json.dumps(
        [{"question": f"{prefix} question {i}?", "answer": f"answer {i}"} for i in range(count)]
    )


def _small_budget(**overrides):
    # 100 tokens at 0.25 tokens/char gives 400-char chunks: one paragraph each.
    return make_settings(MAX_TOKENS_PER_REQUEST=100, **overrides)


def _request(source, artifact=ArtifactType.FLASHCARD, count=10, **params):
    return GenerationRequest(
        source_text=source,
        artifact_type=artifact,
        target_count=count,
        type_params=params,
    )


@pytest.mark.asyncio
async def test_fifty_thousand_chars_routed_to_single_call():
    config = make_settings(TOKENS_PER_CHAR_OVERRIDES={"flashcard": 0.33})
    source = "word " * 10_000
    client = ScriptedClient({1: _cards("direct", 10)})
    result = await GenerationOrchestrator(config, client).agenerate(_request(source))

    assert len(client.calls) == 1
    assert "larger document" not in client.calls[0][1]
    assert "Create exactly 10 high-quality flashcards" in client.calls[0][1]
    assert len(result.items) == 10
    assert result.outcome is Outcome.SUCCESS
    assert (result.succeeded_chunks, result.failed_chunks) == (1, 0)


@pytest.mark.asyncio
async def test_chunked_path_distributes_count():
    client = ScriptedClient({1: _cards("one", 5), 2: _cards("two", 5)})
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(
        _request(_source(2), count=10)
    )

    assert sorted(index for index, _ in client.calls) == [1, 2]
    for index in (1, 2):
        (prompt,) = client.prompts_for(index)
        assert f"This is part {index} of 2 of a larger document." in prompt
        assert "Create exactly 5 high-quality flashcards" in prompt
        assert prompt.endswith(PARAGRAPH)
    assert len(result.items) == 10
    assert result.outcome is Outcome.SUCCESS


@pytest.mark.asyncio
async def test_duplicates_across_chunks_removed_and_truncated():
    first = json.loads(_cards("one", 12))
    duplicates = [
        {"question": card["question"].upper(), "answer": "dup"} for card in first[:3]
    ]
    client = ScriptedClient({1: json.dumps(first), 2: json.dumps(duplicates)})
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(
        _request(_source(2), count=10)
    )

    assert len(result.items) == 10
    assert result.outcome is Outcome.SUCCESS
    assert [item.question for item in result.items] == [c["question"] for c in first[:10]]
    assert all(item.answer != "dup" for item in result.items)


@pytest.mark.asyncio
async def test_failed_chunk_is_isolated():
    client = ScriptedClient(
        {1: _cards("one", 2), 2: NetworkError("connection reset"), 3: _cards("three", 2)}
    )
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(
        _request(_source(3), count=6)
    )

    questions = [item.question for item in result.items]
    assert questions == [
        "one question 0?",
        "one question 1?",
        "three question 0?",
        "three question 1?",
    ]
    assert result.outcome is Outcome.PARTIAL
    assert (result.succeeded_chunks, result.failed_chunks) == (2, 1)
    assert result.failures[0].chunk_index == 2
    assert result.failures[0].kind is FailureKind.NETWORK_ERROR
    assert result.raise_for_outcome() is result


@pytest.mark.asyncio
async def test_failure_kinds_per_chunk():
    client = ScriptedClient(
        {
            1: RawResponse(1, failure=NetworkError("down")),
            2: "no json here at all",
            3: json.dumps({"question": "Q", "answer": "A", "other": 1}),
        }
    )
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(
        _request(_source(3), count=3)
    )

    assert result.outcome is Outcome.FAILURE
    assert [failure.kind for failure in result.failures] == [
        FailureKind.NETWORK_ERROR,
        FailureKind.PARSE_ERROR,
        FailureKind.PARSE_ERROR,
    ]


@pytest.mark.asyncio
async def test_all_chunks_failed_raises_exhaustion_on_request():
    client = ScriptedClient({i: NetworkError("down") for i in (1, 2, 3)})
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(
        _request(_source(3), count=5)
    )

    assert result.items == []
    assert result.outcome is Outcome.FAILURE
    with pytest.raises(ExhaustionError) as excinfo:
        result.raise_for_outcome()
    assert excinfo.value.failed_chunks == 3
    assert excinfo.value.succeeded_chunks == 0


@pytest.mark.asyncio
async def test_all_records_invalid_is_failure_without_failed_chunks():
    bad = json.dumps([{"question": "", "answer": ""}])
    client = ScriptedClient({1: bad})
    result = await GenerationOrchestrator(make_settings(), client).agenerate(
        _request("A short text about cells.", count=3)
    )
    assert result.outcome is Outcome.FAILURE
    assert (result.succeeded_chunks, result.failed_chunks) == (1, 0)


@pytest.mark.asyncio
async def test_count_bound_holds_when_chunks_overproduce():
    client = ScriptedClient({i: _cards(f"c{i}", 20) for i in (1, 2, 3)})
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(
        _request(_source(3), count=7)
    )
    assert len(result.items) == 7
    assert [item.question for item in result.items][:3] == [
        "c1 question 0?",
        "c1 question 1?",
        "c1 question 2?",
    ]


@pytest.mark.asyncio
async def test_order_follows_chunks_not_completion_and_concurrency_is_bounded():
    client = ScriptedClient(
        {i: _cards(f"c{i}", 1) for i in (1, 2, 3, 4)},
        delays={1: 0.05, 2: 0.0, 3: 0.02, 4: 0.0},
    )
    config = _small_budget(MAX_CONCURRENT_LLM_CALLS=2)
    result = await GenerationOrchestrator(config, client).agenerate(
        _request(_source(4), count=4)
    )
    assert [item.question for item in result.items] == [
        f"c{i} question 0?" for i in (1, 2, 3, 4)
    ]
    assert client.max_in_flight <= 2


@pytest.mark.asyncio
async def test_transient_failures_retried_when_enabled():
    client = ScriptedClient(
        {1: [RawResponse(1, failure=NetworkError("blip")), _cards("retry", 2)]}
    )
    config = make_settings(CHUNK_RETRY_ATTEMPTS=2)
    result = await GenerationOrchestrator(config, client).agenerate(
        _request("Short text.", count=2)
    )
    assert len(client.calls) == 2
    assert result.outcome is Outcome.SUCCESS
    assert len(result.items) == 2


@pytest.mark.asyncio
async def test_exhausted_retries_report_attempt_count():
    client = ScriptedClient({1: RawResponse(1, failure=NetworkError("down"))})
    config = make_settings(CHUNK_RETRY_ATTEMPTS=2)
    result = await GenerationOrchestrator(config, client).agenerate(
        _request("Short text.", count=2)
    )
    assert len(client.calls) == 3
    assert result.failures[0].attempts == 3
    assert result.as_dict()["failures"][0]["attempts"] == 3


@pytest.mark.asyncio
async def test_no_retry_by_default_or_for_parse_errors():
    client = ScriptedClient({1: [RawResponse(1, failure=NetworkError("blip")), _cards("x", 1)]})
    result = await GenerationOrchestrator(make_settings(), client).agenerate(
        _request("Short text.", count=1)
    )
    assert len(client.calls) == 1
    assert result.outcome is Outcome.FAILURE

    client = ScriptedClient({1: ["not json", _cards("x", 1)]})
    config = make_settings(CHUNK_RETRY_ATTEMPTS=3)
    result = await GenerationOrchestrator(config, client).agenerate(
        _request("Short text.", count=1)
    )
    assert len(client.calls) == 1
    assert result.failures[0].kind is FailureKind.PARSE_ERROR


@pytest.mark.asyncio
async def test_unexpected_exception_counted_as_failed_chunk():
    client = ScriptedClient({1: RuntimeError("bug"), 2: _cards("two", 1)})
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(
        _request(_source(2), count=2)
    )
    assert result.outcome is Outcome.PARTIAL
    assert result.failures[0].kind is FailureKind.INTERNAL_ERROR


@pytest.mark.asyncio
async def test_usage_summed_across_chunks():
    usage = TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3)
    client = ScriptedClient(
        {i: RawResponse(i, text=_cards(f"c{i}", 1), usage=usage) for i in (1, 2)}
    )
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(
        _request(_source(2), count=2)
    )
    assert result.usage.total_tokens == 6
    assert result.as_dict()["usage"]["prompt_tokens"] == 2


@pytest.mark.asyncio
async def test_study_notes_merged_in_chunk_order():
    client = ScriptedClient(
        {
            1: json.dumps({"summary": "S1", "content": "C1"}),
            2: "```json\n" + json.dumps({"summary": "S2", "content": "C2"}) + "\n```",
        },
        delays={1: 0.02},
    )
    request = GenerationRequest(source_text=_source(2), artifact_type="study_note")
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(request)

    assert len(result.items) == 1
    assert result.items[0].summary == "S1\n\nS2"
    assert result.items[0].content == "C1\n\nC2"


def _section(title: str) -> str:
    return json.dumps(
        {
            "section_title": title,
            "lesson_intro": "Intro",
            "key_points": ["a", "b", "c"],
            "definitions": {"term": "meaning"},
            "examples": [{"title": "Ex", "description": "Desc"}],
            "section_summary": "Summary",
            "questions": [
                {
                    "type": "short_answer",
                    "question": "Why?",
                    "correct_answer": "Because",
                    "explanation": "It is so.",
                }
            ],
        }
    )


@pytest.mark.asyncio
async def test_enhanced_notes_one_section_per_chunk():
    client = ScriptedClient({1: _section("First"), 2: _section("Second")})
    request = GenerationRequest(source_text=_source(2), artifact_type="enhanced_note")
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(request)
    assert [item.section_title for item in result.items] == ["First", "Second"]


@pytest.mark.asyncio
async def test_count_bound_applies_to_note_sections_when_requested():
    client = ScriptedClient({i: _section(f"Part {i}") for i in (1, 2, 3)})
    request = GenerationRequest(
        source_text=_source(3), artifact_type="enhanced_note", target_count=1
    )
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(request)
    assert len(client.calls) == 3
    assert [item.section_title for item in result.items] == ["Part 1"]
    assert result.outcome is Outcome.SUCCESS


@pytest.mark.asyncio
async def test_answer_validation_never_chunked():
    reply = json.dumps(
        {"is_correct": True, "confidence": 90, "feedback": "Close enough.", "similarity_score": 85}
    )
    client = ScriptedClient({1: reply})
    request = GenerationRequest(
        source_text=_source(5),
        artifact_type="answer_validation",
        type_params={"question": "Q?", "correct_answer": "A", "question_type": "short_answer"},
    )
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(request)
    assert len(client.calls) == 1
    assert result.items[0].is_correct is True
    assert result.outcome is Outcome.SUCCESS


@pytest.mark.asyncio
async def test_document_metadata_uses_opening_words():
    client = ScriptedClient({1: json.dumps({"title": "Cells", "description": "About cells."})})
    words = " ".join(f"w{i}" for i in range(3000))
    request = GenerationRequest(source_text=words, artifact_type="document_metadata")
    result = await GenerationOrchestrator(_small_budget(), client).agenerate(request)
    (prompt,) = client.prompts_for(1)
    assert "w999" in prompt.split()
    assert "w1000" not in prompt.split()
    assert result.items[0].title == "Cells"


def test_synchronous_generate():
    client = ScriptedClient({1: _cards("sync", 3)})
    result = GenerationOrchestrator(make_settings(), client).generate(
        _request("Short text.", count=3)
    )
    assert result.outcome is Outcome.SUCCESS
    payload = result.as_dict()
    assert payload["outcome"] == "success"
    assert payload["items"][0] == {"question": "sync question 0?", "answer": "answer 0"}
    assert client.sessions == 1


@pytest.mark.asyncio
async def test_quiz_items_serialize_with_plain_values():
    reply = json.dumps(
        [{"question": "The Sun is a star.", "correct_answer": "TRUE", "explanation": "It is."}]
    )
    client = ScriptedClient({1: reply})
    request = _request("Stars.", artifact=ArtifactType.QUIZ_QUESTION, count=1, quiz_type="true_false")
    result = await GenerationOrchestrator(make_settings(), client).agenerate(request)
    assert result.as_dict()["items"] == [
        {
            "question": "The Sun is a star.",
            "type": "true_false",
            "correct_answer": "true",
            "explanation": "It is.",
            "options": None,
        }
    ]


class _GeminiHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def do_POST(self):
        self.rfile.read(int(self.headers.get("Content-Length", 0)))
        reply = {"candidates": [{"content": {"parts": [{"text": _cards("live", 2)}]}}]}
        body = json.dumps(reply).encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def gemini_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _GeminiHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/v1beta"
    server.shutdown()
    server.server_close()


def test_repeated_synchronous_calls_over_keep_alive_connections(gemini_server, monkeypatch):
    for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    config = make_settings(LLM_API_BASE=gemini_server)
    client = GenerationClient(config)
    orchestrator = GenerationOrchestrator(config, client)

    first = orchestrator.generate(_request("Short text.", count=2))
    second = orchestrator.generate(_request("Short text.", count=2))

    assert first.outcome is Outcome.SUCCESS
    assert second.outcome is Outcome.SUCCESS
    assert second.failures == []
    assert [item.question for item in second.items] == [
        "live question 0?",
        "live question 1?",
    ]
    assert client._client.is_closed
