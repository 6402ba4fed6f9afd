"""Test SSE frame parsing"""

import unittest

from madapt.engine.errors import FrameParseError
from madapt.engine.sse import FrameBuffer, SSEFrame, parse_frame


class TestParseFrame(unittest.TestCase):
    def test_event_and_data(self):
        frame = parse_frame('event: message_delta\ndata: {"a": 1}')
        self.assertEqual(
            frame, SSEFrame(event="message_delta", data='{"a": 1}')
        )

    def test_multiline_data(self):
        frame = parse_frame("data: line one\ndata:line two\nid: 7")
        self.assertEqual(frame.data, "line one\nline two")
        self.assertEqual(frame.id, "7")
        self.assertIsNone(frame.event)

    def test_only_one_space_stripped(self):
        frame = parse_frame("data:   x")
        self.assertEqual(frame.data, "  x")

    def test_comments_only(self):
        self.assertIsNone(parse_frame(": keep-alive"))
        self.assertIsNone(parse_frame("retry: 1000"))

    def test_comment_lines_ignored(self):
        frame = parse_frame(": ping\ndata: x")
        self.assertEqual(frame.data, "x")


class TestFrameBuffer(unittest.TestCase):
    def test_complete_frames(self):
        buffer = FrameBuffer()
        frames = list(buffer.feed(b"data: a\n\ndata: b\n\n"))
        self.assertEqual([f.data for f in frames], ["a", "b"])
        self.assertEqual(buffer.pending, "")

    def test_partial_frame_kept(self):
        buffer = FrameBuffer()
        self.assertEqual(list(buffer.feed(b"data: hel")), [])
        self.assertEqual(buffer.pending, "data: hel")
        frames = list(buffer.feed(b"lo\n\n"))
        self.assertEqual([f.data for f in frames], ["hello"])

    def test_line_endings(self):
        for sep in ["\r\n", "\r", "\n"]:
            with self.subTest(sep=repr(sep)):
                text = f"event: e{sep}data: x{sep}{sep}data: y{sep}{sep}"
                frames = list(FrameBuffer().feed(text.encode()))
                self.assertEqual([f.data for f in frames], ["x", "y"])
                self.assertEqual(frames[0].event, "e")

    def test_crlf_split_across_chunks(self):
        buffer = FrameBuffer()
        frames = list(buffer.feed(b"data: x\r\n\r"))
        frames += list(buffer.feed(b"\ndata: y\r\n\r\n"))
        self.assertEqual([f.data for f in frames], ["x", "y"])

    def test_utf8_split(self):
        payload = "data: caffè ☕\n\n".encode()
        for cut in range(1, len(payload)):
            with self.subTest(cut=cut):
                buffer = FrameBuffer()
                frames = list(buffer.feed(payload[:cut]))
                frames += list(buffer.feed(payload[cut:]))
                self.assertEqual([f.data for f in frames], ["caffè ☕"])

    def test_flush(self):
        buffer = FrameBuffer()
        self.assertEqual(list(buffer.feed(b"data: tail")), [])
        frame = buffer.flush()
        self.assertEqual(frame.data, "tail")
        self.assertIsNone(buffer.flush())

    def test_limit(self):
        buffer = FrameBuffer(max_buffer_chars=10)
        with self.assertRaises(FrameParseError):
            list(buffer.feed(b"data: " + b"x" * 20))
        self.assertEqual(buffer.pending, "")
        frames = list(buffer.feed(b"data: ok\n\n"))
        self.assertEqual([f.data for f in frames], ["ok"])

    def test_clear(self):
        buffer = FrameBuffer()
        list(buffer.feed(b"data: x"))
        buffer.clear()
        self.assertEqual(buffer.pending, "")
        self.assertIsNone(buffer.flush())


if __name__ == '__main__':
    unittest.main()
