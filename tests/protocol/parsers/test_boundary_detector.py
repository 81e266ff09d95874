import pytest

from finch_service.protocol.parsers.boundary import StreamBoundaryDetector


def feed_all(chunks):
    detector = StreamBoundaryDetector()
    forwarded = "".join(detector.feed(c) for c in chunks)
    forwarded += detector.finalize()
    return detector, forwarded


def test_prose_passes_through():
    detector, forwarded = feed_all(["Hello", ", ", "world!"])
    assert forwarded == "Hello, world!"
    assert not detector.tool_call_detected


def test_prose_chunks_forwarded_immediately():
    detector = StreamBoundaryDetector()
    assert detector.feed("The answer") == "The answer"
    assert detector.feed(" is 4.") == " is 4."


def test_transition_chunk_forwards_only_text_before_marker():
    detector = StreamBoundaryDetector()
    assert detector.feed("Let me check. ") == "Let me check. "
    assert detector.feed('Ok <tool_call>{"name"') == "Ok "
    assert detector.tool_call_detected
    assert detector.feed(': "x", "arguments": {}}</tool_call> more prose') == ""
    assert detector.finalize() == ""


def test_marker_split_across_chunks_is_not_leaked():
    detector, forwarded = feed_all(["Sure <tool", "_ca", 'll>{"name": "a", "arguments": {}}'])
    assert forwarded == "Sure "
    assert detector.marker_position == len("Sure ")


def test_false_marker_prefix_is_released():
    detector = StreamBoundaryDetector()
    assert detector.feed("a <tool") == "a "
    assert detector.feed("s are fun") == "<tools are fun"
    assert not detector.tool_call_detected


def test_held_fragment_released_on_finalize():
    detector = StreamBoundaryDetector()
    assert detector.feed("ends with <") == "ends with "
    assert detector.finalize() == "<"


@pytest.mark.parametrize("size", [1, 2, 3, 7, 11, 50])
def test_never_forwards_at_or_after_marker(size):
    text = 'Intro text <tool_call>{"name": "a", "arguments": {}}</tool_call> outro'
    chunks = [text[i : i + size] for i in range(0, len(text), size)]
    detector, forwarded = feed_all(chunks)
    marker = text.index("<tool_call>")
    assert forwarded == text[:marker]
    assert detector.text == text


def test_reset_clears_state():
    detector = StreamBoundaryDetector()
    detector.feed("<tool_call>{")
    detector.reset()
    assert not detector.tool_call_detected
    assert detector.feed("fresh") == "fresh"
