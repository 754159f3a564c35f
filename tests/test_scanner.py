"""Tests for the incremental scanner."""

import unittest

from sitestream.scanner import (
    NEW_FILE,
    UPDATE_FILE,
    IncrementalScanner,
    extract_project_name,
    fenced_body,
    language_for_path,
    language_for_tag,
    normalize_path,
    pending_marker_offset,
    scan_buffer,
    strip_code_fence,
    unclosed_marker_offset,
)

STREAM = (
    "<<<<<<< PROJECT_NAME_START Demo Site >>>>>>> PROJECT_NAME_END\n"
    "<<<<<<< NEW_FILE_START index.html >>>>>>> NEW_FILE_END\n"
    "```html\n<!DOCTYPE html>\n<html><body><h1>Hi</h1></body></html>\n```\n"
    "<<<<<<< NEW_FILE_START style.css >>>>>>> NEW_FILE_END\n"
    "```css\nbody { margin: 0; }\n```\n"
    "<<<<<<< NEW_FILE_START script.js >>>>>>> NEW_FILE_END\n"
    "```javascript\nconsole.log('hi');\n```\n"
)


class TestScanBuffer(unittest.TestCase):
    def test_project_name_and_files_in_order(self):
        result = scan_buffer(STREAM, final=True)
        self.assertEqual(result.project_name, "Demo Site")
        self.assertEqual(result.paths(), ["index.html", "style.css", "script.js"])
        self.assertEqual([s.language for s in result.spans], ["html", "css", "javascript"])
        self.assertEqual(result.spans[1].content, "body { margin: 0; }")
        self.assertTrue(result.spans[0].closed)

    def test_last_span_open_until_next_marker(self):
        result = scan_buffer(STREAM)
        self.assertTrue(result.spans[0].closed)
        self.assertFalse(result.spans[-1].closed)
        self.assertEqual(result.open_span().path, "script.js")

    def test_idempotent(self):
        for cut in (0, 40, 117, 200, len(STREAM)):
            self.assertEqual(scan_buffer(STREAM[:cut]), scan_buffer(STREAM[:cut]))

    def test_partial_start_tag_yields_no_file(self):
        for partial in (
            "<<<<<<< NEW_FI",
            "<<<<<<< NEW_FILE_START index.ht",
            "<<<<<<< NEW_FILE_START index.html >>>>>>> NEW_FIL",
        ):
            self.assertEqual(scan_buffer(partial).spans, [])

    def test_final_scan_drops_half_received_start_tag(self):
        buf = "<<<<<<< NEW_FILE_START a.css >>>>>>> NEW_FILE_END\n```css\nbody{}\n```\n<<<<<<< UPDATE_FILE_START sty"
        span = scan_buffer(buf, final=True).spans[0]
        self.assertNotIn("<<<<<<<", span.body)
        self.assertEqual(span.content, "body{}")

    def test_monotonic_growth_for_every_prefix(self):
        previous = {}
        for cut in range(len(STREAM) + 1):
            result = scan_buffer(STREAM[:cut])
            for span in result.spans:
                before = previous.get(span.path)
                if before is not None and not before[1]:
                    self.assertTrue(
                        span.content.startswith(before[0]),
                        f"{span.path} shrank at {cut}: {before[0]!r} -> {span.content!r}",
                    )
                previous[span.path] = (span.content, span.closed)

    def test_update_span_body(self):
        buf = (
            "<<<<<<< UPDATE_FILE_START index.html >>>>>>> UPDATE_FILE_END\n"
            "<<<<<<< SEARCH\n<h1>Old</h1>\n=======\n<h1>New</h1>\n>>>>>>> REPLACE\n"
        )
        result = scan_buffer(buf)
        self.assertEqual(len(result.spans), 1)
        span = result.spans[0]
        self.assertEqual(span.kind, UPDATE_FILE)
        self.assertIn("<<<<<<< SEARCH", span.body)
        self.assertEqual(span.content, "")

    def test_mixed_kinds_close_each_other(self):
        buf = (
            "<<<<<<< UPDATE_FILE_START index.html >>>>>>> UPDATE_FILE_END\nbody-a\n"
            "<<<<<<< NEW_FILE_START about.html >>>>>>> NEW_FILE_END\n```html\n<p>b</p>\n```"
        )
        result = scan_buffer(buf)
        self.assertEqual([s.kind for s in result.spans], [UPDATE_FILE, NEW_FILE])
        self.assertEqual(result.spans[0].body.strip(), "body-a")
        self.assertTrue(result.spans[0].closed)

    def test_paths_normalized(self):
        buf = "<<<<<<< NEW_FILE_START /components/../nav.js >>>>>>> NEW_FILE_END\n```js\nx\n```"
        self.assertEqual(scan_buffer(buf).paths(), ["components/nav.js"])


class TestHelpers(unittest.TestCase):
    def test_language_for_path(self):
        self.assertEqual(language_for_path("a/b.HTML"), "html")
        self.assertEqual(language_for_path("x.js"), "javascript")
        self.assertEqual(language_for_path("README"), "unknown")
        self.assertEqual(language_for_tag("JS"), "javascript")
        self.assertEqual(language_for_tag("python"), "unknown")

    def test_normalize_path(self):
        self.assertEqual(normalize_path("/index.html"), "index.html")
        self.assertEqual(normalize_path("..\\..\\etc\\x.css"), "etc/x.css")
        self.assertEqual(normalize_path("`style.css`"), "style.css")
        self.assertEqual(normalize_path(".."), "")

    def test_project_name_collapses_whitespace(self):
        self.assertEqual(
            extract_project_name("<<<<<<< PROJECT_NAME_START\n  Cool   App  \n>>>>>>> PROJECT_NAME_END"),
            "Cool App",
        )
        self.assertIsNone(extract_project_name("<<<<<<< PROJECT_NAME_START Cool"))

    def test_pending_marker_offset(self):
        self.assertEqual(pending_marker_offset("abc"), 3)
        self.assertEqual(pending_marker_offset("abc\n<<<"), 4)
        self.assertEqual(pending_marker_offset("abc\n<<<<<<< UPDATE_FILE_START x.c"), 4)
        self.assertEqual(unclosed_marker_offset("abc\n<<<"), 7)
        self.assertEqual(unclosed_marker_offset("abc\n<<<<<<< NEW_FILE_START x"), 4)

    def test_strip_code_fence_streaming(self):
        self.assertEqual(strip_code_fence("\n``"), "")
        self.assertEqual(strip_code_fence("\n```htm"), "")
        self.assertEqual(strip_code_fence("\n```html\n<p>a"), "<p>a")
        self.assertEqual(strip_code_fence("\n```html\n<p>a</p>\n``"), "<p>a</p>")
        self.assertEqual(strip_code_fence("\n```html\n<p>a</p>\n```\ntrailing", final=True), "<p>a</p>")

    def test_strip_code_fence_without_fence(self):
        self.assertEqual(strip_code_fence("plain text\n", final=True), "plain text")

    def test_fenced_body(self):
        self.assertEqual(fenced_body("note\n```css\nb{}\n```"), "b{}")
        self.assertIsNone(fenced_body("```css\nb{}"))


class TestIncrementalScanner(unittest.TestCase):
    def test_project_name_cached(self):
        scanner = IncrementalScanner()
        scanner.scan("<<<<<<< PROJECT_NAME_START First >>>>>>> PROJECT_NAME_END")
        result = scanner.scan("<<<<<<< PROJECT_NAME_START Second >>>>>>> PROJECT_NAME_END")
        self.assertEqual(result.project_name, "First")
        self.assertEqual(scanner.scans, 2)


if __name__ == "__main__":
    unittest.main()
