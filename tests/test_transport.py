"""Tests for stream event decoding, providers and the stream controller."""

import io
import json
import unittest
from unittest.mock import patch
from urllib import error as urllib_error

from sitestream.assembler import ProjectFile
from sitestream.model_providers import OpenAICompatProvider, ReplayProvider, resolve_provider
from sitestream.prompts import EDIT
from sitestream.session import GenerationSession, TransportError
from sitestream.transport import (
    CHUNK,
    COMPLETE,
    DONE,
    ERROR,
    IGNORE,
    StreamController,
    decode_event,
    iter_openai_deltas,
    iter_sse_data,
)

DEMO = (
    "<<<<<<< PROJECT_NAME_START Demo >>>>>>> PROJECT_NAME_END\n"
    "<<<<<<< NEW_FILE_START index.html >>>>>>> NEW_FILE_END\n"
    "```html\n<!DOCTYPE html><html></html>\n```"
)


class FailingProvider:
    kind = "fake"
    name = "failing"

    def __init__(self, chunks, exc):
        self.chunks = chunks
        self.exc = exc

    def stream(self, messages, max_tokens, temperature, top_p, timeout_s):
        for chunk in self.chunks:
            yield chunk
        raise self.exc

    def status(self):
        return {"name": self.name}


class TestDecodeEvent(unittest.TestCase):
    def test_done_and_keepalive(self):
        self.assertEqual(decode_event("[DONE]").kind, DONE)
        self.assertEqual(decode_event(" [DONE]\n").kind, DONE)
        self.assertEqual(decode_event(": keepalive").kind, IGNORE)

    def test_json_events(self):
        ev = decode_event(json.dumps({"type": "chunk", "content": "<p>"}))
        self.assertEqual((ev.kind, ev.content), (CHUNK, "<p>"))
        ev = decode_event(json.dumps({"event": "content", "content": "x"}))
        self.assertEqual((ev.kind, ev.content), (CHUNK, "x"))
        ev = decode_event(json.dumps({"type": "error", "message": "quota"}))
        self.assertEqual((ev.kind, ev.content), (ERROR, "quota"))
        ev = decode_event(json.dumps({"type": "complete", "files": []}))
        self.assertEqual(ev.kind, COMPLETE)
        self.assertEqual(ev.payload["files"], [])
        self.assertEqual(decode_event(json.dumps({"type": "token-usage-updated", "tokens": 5})).kind, IGNORE)

    def test_raw_text_is_content(self):
        ev = decode_event("body { color: red; }")
        self.assertEqual((ev.kind, ev.content), (CHUNK, "body { color: red; }"))
        ev = decode_event('{"a": 1}')
        self.assertEqual((ev.kind, ev.content), (CHUNK, '{"a": 1}'))


class TestSSE(unittest.TestCase):
    def test_iter_sse_data(self):
        lines = [b"data: one\n", b": ping\n", b"\n", b"event: x\n", "data:two\r\n"]
        self.assertEqual(list(iter_sse_data(lines)), ["one", "two"])

    def test_iter_openai_deltas_stops_at_done(self):
        def line(content):
            return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})

        lines = [line("Hel"), "data: {\"choices\": [{\"delta\": {}}]}", line("lo"), "data: [DONE]", line("ignored")]
        self.assertEqual("".join(iter_openai_deltas(lines)), "Hello")

    def test_iter_openai_deltas_error_payload(self):
        with self.assertRaises(RuntimeError):
            list(iter_openai_deltas(['data: {"error": {"message": "bad key"}}']))


class TestProviders(unittest.TestCase):
    def test_replay_chunks(self):
        provider = ReplayProvider("abcdefg", chunk_chars=3)
        self.assertEqual(list(provider.stream([])), ["abc", "def", "g"])
        self.assertEqual(provider.status()["chars"], 7)

    def test_resolve_provider(self):
        self.assertIsInstance(resolve_provider("openai"), OpenAICompatProvider)
        with self.assertRaises(ValueError):
            resolve_provider("nope")
        with self.assertRaises(ValueError):
            resolve_provider("replay")

    def test_openai_compat_streams_deltas(self):
        body = (
            'data: {"choices": [{"delta": {"content": "<p>"}}]}\n\n'
            'data: {"choices": [{"delta": {"content": "hi</p>"}}]}\n\n'
            "data: [DONE]\n\n"
        ).encode("utf-8")
        provider = OpenAICompatProvider(base_url="http://localhost:1/v1", api_key="k", model="m")
        with patch("sitestream.model_providers.adapters.urllib_request.urlopen", return_value=io.BytesIO(body)) as urlopen:
            out = "".join(provider.stream([{"role": "user", "content": "x"}], 10, 0.1, 0.9, 5))
        self.assertEqual(out, "<p>hi</p>")
        req = urlopen.call_args[0][0]
        self.assertEqual(req.full_url, "http://localhost:1/v1/chat/completions")
        self.assertEqual(req.get_header("Authorization"), "Bearer k")
        self.assertTrue(json.loads(req.data.decode("utf-8"))["stream"])

    def test_openai_compat_connection_error(self):
        provider = OpenAICompatProvider(base_url="http://localhost:1/v1")
        with patch(
            "sitestream.model_providers.adapters.urllib_request.urlopen",
            side_effect=urllib_error.URLError("refused"),
        ):
            with self.assertRaises(RuntimeError):
                list(provider.stream([], 10, 0.1, 0.9, 5))


class TestStreamController(unittest.TestCase):
    def test_start_with_replay(self):
        focused = []
        controller = StreamController(ReplayProvider(DEMO, chunk_chars=7), on_focus=focused.append)
        result = controller.start("a demo page")
        self.assertEqual(result.project_name, "Demo")
        self.assertEqual([(f.path, f.content) for f in result.files], [("index.html", "<!DOCTYPE html><html></html>")])
        self.assertEqual(focused, ["index.html"])

    def test_transport_failure_keeps_partial(self):
        controller = StreamController(FailingProvider([DEMO[:130]], OSError("connection reset")))
        with self.assertRaises(TransportError) as ctx:
            controller.start("a demo page")
        result = ctx.exception.result
        self.assertEqual(result.status, "error")
        self.assertEqual(result.files[0].path, "index.html")
        self.assertTrue(result.files[0].content)
        self.assertEqual(controller.session.status, "error")

    def test_cancel_between_chunks(self):
        controller = StreamController(ReplayProvider(DEMO, chunk_chars=10))

        def on_update(files):
            if files:
                controller.cancel()

        controller.on_update = on_update
        result = controller.start("a demo page")
        self.assertEqual(result.status, "cancelled")
        self.assertEqual(controller.session.buffer, DEMO[: len(controller.session.buffer)])
        self.assertLess(len(controller.session.buffer), len(DEMO))

    def test_run_events_structured(self):
        session = GenerationSession(cursor="")
        events = [json.dumps({"type": "chunk", "content": DEMO[:70]}), ": ping", DEMO[70:], "[DONE]", "ignored"]
        result = StreamController().run_events(session, events)
        self.assertEqual(result.status, "done")
        self.assertEqual(result.files[0].content, "<!DOCTYPE html><html></html>")

    def test_run_events_eof_is_done(self):
        session = GenerationSession(cursor="")
        result = StreamController().run_events(session, [DEMO])
        self.assertEqual(result.status, "done")

    def test_run_events_error_event(self):
        session = GenerationSession(cursor="")
        with self.assertRaises(TransportError) as ctx:
            StreamController().run_events(session, [DEMO[:130], json.dumps({"type": "error", "message": "quota"})])
        self.assertEqual(ctx.exception.result.status, "error")
        self.assertEqual(len(ctx.exception.result.files), 1)

    def test_run_events_complete_in_edit_mode(self):
        session = GenerationSession(mode=EDIT, existing_files=[ProjectFile("index.html", "<h1>Old</h1>")], cursor="")
        complete = {
            "type": "complete",
            "files": [{"path": "index.html", "action": "update", "searchReplaceBlocks": [{"search": "Old", "replace": "New"}]}],
        }
        result = StreamController().run_events(session, ["some text", json.dumps(complete)])
        self.assertEqual(result.file("index.html").content, "<h1>New</h1>")
        self.assertEqual(result.status, "done")


if __name__ == "__main__":
    unittest.main()
